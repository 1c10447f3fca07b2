# stackdump_index/records.py
"""
Dump row reader: StackExchange XML exports, one <row .../> element per record.

Rows come out as plain dicts keyed by the dump attribute names (Id, PostTypeId,
ParentId, ...). Integer-like attributes are converted to int, everything else
stays a string. The reader is forward only and keeps byte counters so callers can
report progress as a fraction of the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional

from lxml import etree

from .errors import MissingPrerequisiteFile, UnsupportedKind

Record = Dict[str, Any]

# Definitions of integer field values from
# https://meta.stackexchange.com/questions/2677/database-schema-documentation-for-the-public-data-dump-and-sede
POSTTYPE_QUESTION = 1
POSTTYPE_ANSWER = 2
VOTETYPE_UPMOD = 2
VOTETYPE_DOWNMOD = 3

FILE_NAMES: Dict[str, str] = {
    "post": "Posts.xml",
    "comment": "Comments.xml",
    "user": "Users.xml",
    "postlink": "PostLinks.xml",
    "vote": "Votes.xml",
}
# kinds that get their own index; votes are only folded into posts
INDEXED_KINDS = ("post", "comment", "postlink", "user")

INT_FIELDS = frozenset({
    "Id", "PostTypeId", "ParentId", "AcceptedAnswerId", "PostId", "RelatedPostId",
    "LinkTypeId", "VoteTypeId", "UserId", "OwnerUserId", "LastEditorUserId",
    "ViewCount", "Score", "AnswerCount", "CommentCount", "FavoriteCount",
    "BountyAmount", "Reputation", "UpVotes", "DownVotes", "Views", "AccountId",
})


def dump_file(root: Path, kind: str) -> Path:
    name = FILE_NAMES.get(kind)
    if name is None:
        raise UnsupportedKind(f"Unsupported type: {kind}")
    path = Path(root) / name
    if not path.exists():
        raise MissingPrerequisiteFile(f"{name} must exist in {Path(root)}")
    return path


def coerce_row(attrib) -> Record:
    row: Record = {}
    for k, v in attrib.items():
        if k in INT_FIELDS:
            try:
                row[k] = int(v)
                continue
            except ValueError:
                pass
        row[k] = v
    return row


class RecordReader:
    """Iterate the rows of one dump file.

    ``lines_read``, ``bytes_read`` and ``percent`` are updated as rows are
    yielded. A reader can be iterated once.
    """

    def __init__(self, path: Path, kind: Optional[str] = None) -> None:
        self.path = Path(path)
        self.kind = kind
        self.file_size = self.path.stat().st_size
        self.lines_read = 0
        self.bytes_read = 0

    @property
    def percent(self) -> float:
        if self.file_size <= 0:
            return 100.0
        return min(100.0, 100.0 * self.bytes_read / self.file_size)

    def __iter__(self) -> Iterator[Record]:
        with self.path.open("rb") as fh:
            for _, elem in etree.iterparse(fh, events=("end",), tag="row", huge_tree=True):
                row = coerce_row(elem.attrib)
                # drop parsed siblings so memory stays flat on multi-GB dumps
                elem.clear(keep_tail=True)
                while elem.getprevious() is not None:
                    del elem.getparent()[0]
                self.lines_read += 1
                self.bytes_read = fh.tell()
                yield row
        self.bytes_read = self.file_size


def open_dump(root: Path, kind: str) -> RecordReader:
    return RecordReader(dump_file(root, kind), kind)


def stream_percent(stream: Iterable[Record], seen: int) -> float:
    """Percent done for a RecordReader, or for a sized in-memory stream."""
    pct = getattr(stream, "percent", None)
    if pct is not None:
        return float(pct)
    try:
        total = len(stream)  # type: ignore[arg-type]
    except TypeError:
        return 0.0
    return 100.0 if total == 0 else 100.0 * seen / total
