# stackdump_index/questions_stage.py
from __future__ import annotations
from typing import Iterable, List, Optional

from .config import Config
from .matching import Matcher, make_matcher
from .records import POSTTYPE_QUESTION, Record, RecordReader, dump_file, open_dump, stream_percent
from .utils import ProgressCallback, TqdmProgress, log, newer_than, write_ids

def question_ids_by_tag(posts: Iterable[Record], include: Matcher,
                        on_progress: Optional[ProgressCallback] = None,
                        every: int = 100) -> List[int]:
    """Ids of the questions accepted by `include`, in stream order."""
    ids: List[int] = []
    read = 0
    for post in posts:
        read += 1
        if post.get("PostTypeId") == POSTTYPE_QUESTION and include(post):
            ids.append(post["Id"])
        if on_progress and read % every == 0:
            on_progress(read, len(ids), stream_percent(posts, read), "% Posts scanned for tags")
    if on_progress:
        on_progress(read, len(ids), 100.0, "% Posts scanned for tags")
    return ids

def get_question_ids_by_tags(root, include_tags: str = "",
                             on_progress: Optional[ProgressCallback] = None) -> List[int]:
    return question_ids_by_tag(open_dump(root, "post"),
                               make_matcher(include_tags, True), on_progress)

def step_questions(cfg: Config) -> List[int] | None:
    posts_xml = dump_file(cfg.root, "post")
    if not cfg.force and newer_than(cfg.questions_json, posts_xml):
        log("[questions] already fresh - skip (use --force after changing --include-tags)")
        return None

    log(f"[questions] include filter: {cfg.include_tags or '<everything>'}")
    with TqdmProgress("[questions] Posts") as bar:
        ids = question_ids_by_tag(RecordReader(posts_xml, "post"),
                                  make_matcher(cfg.include_tags, True), bar, cfg.progress_every)
    write_ids(cfg.questions_json, ids)
    log(f"[questions] done: {len(ids):,} questions -> {cfg.questions_json}")
    return ids
