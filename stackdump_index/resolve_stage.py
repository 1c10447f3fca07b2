# stackdump_index/resolve_stage.py
"""
Post set resolution: from the seed question ids, work out every post to index.

  1) PostLinks pass: a post linked to or from a seed question is pulled in as if
     it were a seed question itself (post_ids and extended_question_ids).
  2) Posts pass: questions in extended_question_ids that match the exclude filter
     are dropped; answers whose parent is in extended_question_ids are admitted
     unless they match the exclude filter.

Outputs: PostIds.json, ExtendedQuestionIds.json
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from pyroaring import BitMap

from .config import Config
from .errors import MissingPrerequisiteFile
from .idsets import has, id_set, valid_id
from .matching import Matcher, make_matcher
from .records import (POSTTYPE_ANSWER, POSTTYPE_QUESTION, Record, dump_file,
                      RecordReader, stream_percent)
from .utils import ProgressCallback, TqdmProgress, log, newer_than, read_ids, write_ids


@dataclass
class PostSet:
    post_ids: BitMap = field(default_factory=BitMap)
    # questions plus anything linked to them; linked posts are not checked to be questions
    extended_question_ids: BitMap = field(default_factory=BitMap)
    admitted_answers: int = 0

    @classmethod
    def from_seed(cls, seed_ids: Iterable[int]) -> "PostSet":
        seed = id_set(seed_ids)
        return cls(post_ids=BitMap(seed), extended_question_ids=BitMap(seed))


def expand_links(post_set: PostSet, seed_ids, post_links: Iterable[Record],
                 on_progress: Optional[ProgressCallback] = None, every: int = 100) -> int:
    """Add the far end of every link touching a seed question. Returns links followed."""
    # membership is tested against the seed as given, never against the growing sets
    seed = id_set(seed_ids)
    hits = 0
    read = 0
    for link in post_links:
        read += 1
        post_id, related_id = link.get("PostId"), link.get("RelatedPostId")
        if has(seed, post_id) and valid_id(related_id):
            hits += 1
            post_set.post_ids.add(related_id)
            post_set.extended_question_ids.add(related_id)
        if has(seed, related_id) and valid_id(post_id):
            hits += 1
            post_set.post_ids.add(post_id)
            post_set.extended_question_ids.add(post_id)
        if on_progress and read % every == 0:
            on_progress(read, hits, stream_percent(post_links, read), "% PostLinks processed")
    if on_progress:
        on_progress(read, hits, 100.0, "% PostLinks processed")
    return hits


def classify_posts(post_set: PostSet, posts: Iterable[Record], exclude: Matcher,
                   on_progress: Optional[ProgressCallback] = None, every: int = 100) -> int:
    """Drop excluded questions and admit answers of kept questions. Returns answers admitted.

    Must stay a single in-order pass: whether an answer is admitted depends on
    whether its parent was already rejected when the answer is visited. An answer
    seen before its parent's rejection stays admitted.
    """
    extended = post_set.extended_question_ids
    admitted = 0
    read = 0
    for post in posts:
        read += 1
        post_type = post.get("PostTypeId")
        post_id = post.get("Id")
        if post_type == POSTTYPE_QUESTION:
            if has(extended, post_id) and exclude(post):
                extended.discard(post_id)
                post_set.post_ids.discard(post_id)
        elif post_type == POSTTYPE_ANSWER:
            if has(extended, post.get("ParentId")) and valid_id(post_id) and not exclude(post):
                post_set.post_ids.add(post_id)
                admitted += 1
        if on_progress and read % every == 0:
            on_progress(read, admitted, stream_percent(posts, read), "% Posts processed")
    if on_progress:
        on_progress(read, admitted, 100.0, "% Posts processed")
    post_set.admitted_answers += admitted
    return admitted


def resolve_post_set(seed_ids: Iterable[int], post_links: Iterable[Record], posts: Iterable[Record],
                     exclude: Matcher, on_progress: Optional[ProgressCallback] = None,
                     every: int = 100) -> PostSet:
    seed = id_set(seed_ids)
    post_set = PostSet.from_seed(seed)
    expand_links(post_set, seed, post_links, on_progress, every)
    classify_posts(post_set, posts, exclude, on_progress, every)
    return post_set


def step_post_ids(cfg: Config) -> PostSet | None:
    posts_xml = dump_file(cfg.root, "post")
    links_xml = dump_file(cfg.root, "postlink")
    if not cfg.questions_json.exists():
        raise MissingPrerequisiteFile(f"seed ids not found: {cfg.questions_json}")

    if not cfg.force and newer_than(cfg.post_ids_json, cfg.questions_json, posts_xml, links_xml) \
       and newer_than(cfg.extended_ids_json, cfg.questions_json, posts_xml, links_xml):
        log("[resolve] already fresh - skip (use --force after changing --exclude-tags)")
        return None

    seed = id_set(read_ids(cfg.questions_json))
    log(f"[resolve] seed questions: {len(seed):,}")
    post_set = PostSet.from_seed(seed)

    with TqdmProgress("[resolve] PostLinks") as bar:
        links = expand_links(post_set, seed, RecordReader(links_xml, "postlink"), bar, cfg.progress_every)
    log(f"[resolve] links followed: {links:,}; extended questions: {len(post_set.extended_question_ids):,}")

    exclude = make_matcher(cfg.exclude_tags, False)
    with TqdmProgress("[resolve] Posts") as bar:
        classify_posts(post_set, RecordReader(posts_xml, "post"), exclude, bar, cfg.progress_every)

    write_ids(cfg.post_ids_json, post_set.post_ids)
    write_ids(cfg.extended_ids_json, post_set.extended_question_ids)
    log(f"[resolve] done: posts={len(post_set.post_ids):,} "
        f"extended questions={len(post_set.extended_question_ids):,} answers={post_set.admitted_answers:,}")
    return post_set
