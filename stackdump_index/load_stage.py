# stackdump_index/load_stage.py
"""
Load stage: write the resolved posts (and their comments, links and users) into
the sink, then copy question fields onto the stored answers.

Every write runs through a BoundedPool, so at most `batch_size` puts are in flight
at once. A failed put never stops the stream: it becomes a WriteResult, results are
tallied per batch and failures logged once per batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pyroaring import BitMap

from .config import Config
from .errors import EnrichmentMiss, InvalidIdentifier, MissingPrerequisiteFile, UnsupportedKind, WriteFailure
from .idsets import has, id_set, valid_id
from .records import (FILE_NAMES, INDEXED_KINDS, POSTTYPE_QUESTION, Record, RecordReader,
                      dump_file, stream_percent)
from .sink import Sink
from .utils import BoundedPool, ProgressCallback, TqdmProgress, log, read_ids
from .votes_stage import total_votes

# ---------- write results ----------
@dataclass
class WriteResult:
    doc_id: Any
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def benign(self) -> bool:
        return isinstance(self.error, InvalidIdentifier)


@dataclass
class WriteTally:
    index: str
    written: int = 0
    skipped: int = 0
    failures: List[WriteFailure] = field(default_factory=list)

    def add(self, results: List[WriteResult]) -> None:
        batch_failures: List[WriteFailure] = []
        for r in results:
            if r.ok:
                self.written += 1
            elif r.benign:
                # placeholder ids like -1 are routine in the dumps
                self.skipped += 1
            else:
                batch_failures.append(r.error)  # type: ignore[arg-type]
        if batch_failures:
            self.failures.extend(batch_failures)
            ids = ", ".join(str(f.doc_id) for f in batch_failures[:10])
            log(f"[load] {self.index}: {len(batch_failures)} rows failed to index (ids {ids}); "
                f"first error: {batch_failures[0].cause!r}")

    def summary(self) -> str:
        return f"written={self.written:,} skipped={self.skipped:,} failed={len(self.failures):,}"


def put_record(sink: Sink, index: str, kind: str, record: Record) -> WriteResult:
    doc_id = record.get("Id")
    try:
        sink.put_document(index, kind, doc_id, record)
    except InvalidIdentifier as e:
        return WriteResult(doc_id, e)
    except Exception as e:
        return WriteResult(doc_id, WriteFailure(index, doc_id, e))
    return WriteResult(doc_id)


def recreate_index(sink: Sink, index: str, kind: str) -> None:
    if sink.delete_index(index):
        log(f"[load] dropped existing index {index}")
    sink.create_index(index, kind)


def _stream_into(sink: Sink, index: str, kind: str, records: Iterable[Record],
                 admit: Callable[[Record], bool], enrich: Optional[Callable[[Record], None]],
                 batch_size: int, on_progress: Optional[ProgressCallback], every: int) -> WriteTally:
    tally = WriteTally(index)
    admitted = 0
    read = 0
    with BoundedPool(batch_size) as pool:
        for record in records:
            read += 1
            if admit(record):
                admitted += 1
                if enrich is not None:
                    enrich(record)
                pool.submit(put_record, sink, index, kind, record)
                if admitted % batch_size == 0:
                    tally.add(pool.join())
            if on_progress and read % every == 0:
                on_progress(read, admitted, stream_percent(records, read), f"indexing {kind}")
        tally.add(pool.join())
    if on_progress:
        on_progress(read, admitted, 100.0, f"indexing {kind}")
    # the sink buffers puts; make them visible to searches
    sink.refresh_index(index)
    return tally


# ---------- filtered load ----------
def _remember(user_ids: BitMap, user_id) -> None:
    if valid_id(user_id):
        user_ids.add(user_id)


def should_index(kind: str, ids, user_ids) -> Callable[[Record], bool]:
    if kind == "post":
        return lambda r: has(ids, r.get("Id"))
    if kind == "comment":
        return lambda r: has(ids, r.get("PostId"))
    if kind == "postlink":
        return lambda r: has(ids, r.get("PostId")) or has(ids, r.get("RelatedPostId"))
    if kind == "user":
        # has() already refuses negative ids such as the -1 community user
        return lambda r: has(user_ids, r.get("Id"))
    raise UnsupportedKind(f"Unsupported type: {kind}")


def load_by_type(kind: str, ids, records: Iterable[Record], sink: Sink, user_ids: BitMap,
                 vote_totals: Optional[Dict[int, int]] = None, index_prefix: str = "",
                 batch_size: int = 20, on_progress: Optional[ProgressCallback] = None,
                 every: int = 100) -> int:
    """Rebuild ``index_prefix + kind`` from `records`, keeping only rows tied to `ids`.

    Posts get ``VoteCount`` from `vote_totals` when given and add their owner to
    `user_ids`; comments add their author. Users are filtered by `user_ids`, so
    load them last. Returns the number of documents written.
    """
    index = index_prefix + kind
    admit = should_index(kind, ids, user_ids)
    recreate_index(sink, index, kind)

    def enrich(record: Record) -> None:
        if kind == "post":
            if vote_totals is not None:
                record["VoteCount"] = vote_totals.get(record.get("Id"), 0)
            _remember(user_ids, record.get("OwnerUserId"))
        elif kind == "comment":
            _remember(user_ids, record.get("UserId"))

    tally = _stream_into(sink, index, kind, records, admit, enrich, batch_size, on_progress, every)
    log(f"[load] {index}: {tally.summary()}")
    return tally.written


def index_from_post_ids(post_ids_path: Path, sink: Sink, kind: str, user_ids: BitMap,
                        index_prefix: str = "", batch_size: int = 20,
                        on_progress: Optional[ProgressCallback] = None, every: int = 100) -> int:
    """Load one kind from the dump next to `post_ids_path`, filtered by the ids it lists."""
    root = Path(post_ids_path).parent
    post_ids = id_set(read_ids(post_ids_path))
    if kind not in INDEXED_KINDS:
        raise UnsupportedKind(f"Unsupported type: {kind}")
    path = dump_file(root, kind)

    vote_totals = None
    if kind == "post":
        try:
            votes_xml = dump_file(root, "vote")
        except MissingPrerequisiteFile:
            log(f"[load] {FILE_NAMES['vote']} not found, posts get no VoteCount")
        else:
            with TqdmProgress("[votes] Votes") as bar:
                vote_totals = total_votes(RecordReader(votes_xml, "vote"), post_ids, bar, every)

    return load_by_type(kind, post_ids, RecordReader(path, kind), sink, user_ids, vote_totals,
                        index_prefix, batch_size, on_progress, every)


# ---------- answer extension ----------
def extend_answers_of(sink: Sink, index: str, question_id: int, fan_out: int = 1000) -> int:
    """Copy Tags, ViewCount and Title (as QuestionTitle) of one question onto its stored answers."""
    answers = sink.search(index, {
        "from": 0,
        "size": fan_out,
        "query": {"term": {"ParentId": question_id}},
    })["hits"]["hits"]
    if not answers:
        return 0
    question = sink.get_document(index, "post", question_id)
    if not question.get("found"):
        raise EnrichmentMiss(f"question {question_id} not in {index}")
    source = question["_source"]
    if source.get("PostTypeId") != POSTTYPE_QUESTION:
        return 0

    extended = 0
    for hit in answers:
        answer = dict(hit["_source"])
        answer["Tags"] = source.get("Tags")
        answer["ViewCount"] = source.get("ViewCount")
        answer["QuestionTitle"] = source.get("Title")
        if put_record(sink, index, "post", answer).ok:
            extended += 1
    return extended


def _extend_quietly(sink: Sink, index: str, question_id: int, fan_out: int):
    try:
        return extend_answers_of(sink, index, question_id, fan_out), None
    except Exception as e:
        # usually a question dropped by the exclude filter
        return 0, e


def extend_answers_from_questions(question_ids: Iterable[int], sink: Sink, index_prefix: str = "",
                                  batch_size: int = 20, fan_out: int = 1000,
                                  on_progress: Optional[ProgressCallback] = None,
                                  every: int = 100) -> int:
    """Back-fill question fields onto the answers of every id in `question_ids`.

    Returns the number of answers rewritten. Missing questions and failed lookups
    are skipped.
    """
    index = index_prefix + "post"
    ids = list(dict.fromkeys(question_ids))
    total = len(ids)
    extended = 0
    misses = 0
    errors: List[BaseException] = []

    def collect(results) -> None:
        nonlocal extended, misses
        for n, err in results:
            extended += n
            if isinstance(err, EnrichmentMiss):
                misses += 1
            elif err is not None:
                errors.append(err)

    with BoundedPool(batch_size) as pool:
        for done, question_id in enumerate(ids, 1):
            pool.submit(_extend_quietly, sink, index, question_id, fan_out)
            if done % batch_size == 0:
                collect(pool.join())
            if on_progress and done % every == 0:
                on_progress(done, extended, 100.0 * done / total, "extending answers")
        collect(pool.join())
    if on_progress:
        on_progress(total, extended, 100.0, "extending answers")

    sink.refresh_index(index)
    log(f"[extend] questions={total:,} answers extended={extended:,} "
        f"questions not in index={misses:,} errors={len(errors):,}")
    if errors:
        log(f"[extend] first error: {errors[0]!r}")
    return extended


# ---------- steps ----------
def step_index(cfg: Config, sink: Sink) -> Dict[str, int]:
    if not cfg.post_ids_json.exists():
        raise MissingPrerequisiteFile(f"post ids not found: {cfg.post_ids_json}")
    # fail before touching the sink if any dump is missing
    for kind in INDEXED_KINDS:
        dump_file(cfg.root, kind)

    user_ids = BitMap()
    counts: Dict[str, int] = {}
    # users last: they are filtered by the owners/authors seen in posts and comments
    for kind in ("post", "comment", "postlink", "user"):
        with TqdmProgress(f"[load] {kind}") as bar:
            counts[kind] = index_from_post_ids(cfg.post_ids_json, sink, kind, user_ids, cfg.index_prefix,
                                               cfg.batch_size, bar, cfg.progress_every)
    log("[load] done: " + ", ".join(f"{k}={v:,}" for k, v in counts.items()))
    return counts


def step_extend(cfg: Config, sink: Sink) -> int:
    if not cfg.extended_ids_json.exists():
        raise MissingPrerequisiteFile(f"extended question ids not found: {cfg.extended_ids_json}")
    question_ids = read_ids(cfg.extended_ids_json)
    log(f"[extend] questions to extend: {len(question_ids):,}")
    with TqdmProgress("[extend] answers") as bar:
        return extend_answers_from_questions(question_ids, sink, cfg.index_prefix, cfg.batch_size,
                                             cfg.answer_fan_out, bar, cfg.progress_every)


def index_all(root: Path, sink: Sink, index_prefix: str = "", batch_size: int = 20,
              every: int = 100) -> Dict[str, int]:
    """Index every row of every dump file, unfiltered."""
    paths = {kind: dump_file(root, kind) for kind in INDEXED_KINDS}
    counts: Dict[str, int] = {}
    for kind, path in paths.items():
        index = index_prefix + kind
        recreate_index(sink, index, kind)
        with TqdmProgress(f"[all] {kind}") as bar:
            tally = _stream_into(sink, index, kind, RecordReader(path, kind), lambda _r: True, None,
                                 batch_size, bar, every)
        log(f"[all] {index}: {tally.summary()}")
        counts[kind] = tally.written
    return counts


def step_index_all(cfg: Config, sink: Sink) -> Dict[str, int]:
    return index_all(cfg.root, sink, cfg.index_prefix, cfg.batch_size, cfg.progress_every)
