# stackdump_index/sink.py
"""
Document sink: the search-index side of the pipeline.

`Sink` is the narrow document-level interface the stages use. `DuckDBSink` keeps
one table per index (id, kind, parent_id, doc JSON) in a DuckDB database.
Like a search engine, puts are buffered: `get_document` sees them at once, while
`search` and `count` only see documents after `refresh_index` (or after the
buffer reaches `flush_every` documents).
"""

from __future__ import annotations

import json, re, threading
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Protocol, Tuple

import duckdb
import polars as pl

from .errors import InvalidIdentifier
from .idsets import valid_id
from .utils import log

Document = Dict[str, Any]

_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Sink(Protocol):
    def create_index(self, index: str, kind: str) -> None: ...
    def delete_index(self, index: str) -> bool: ...
    def index_exists(self, index: str) -> bool: ...
    def put_document(self, index: str, kind: str, doc_id: int, doc: Document) -> Dict[str, Any]: ...
    def get_document(self, index: str, kind: str, doc_id: int) -> Dict[str, Any]: ...
    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]: ...
    def refresh_index(self, index: str) -> None: ...
    def count(self, index: str) -> int: ...


def _quoted(name: str) -> str:
    if not _NAME.match(name):
        raise ValueError(f"bad index/field name: {name!r}")
    return f'"{name}"'


def _parent_of(doc: Document):
    p = doc.get("ParentId")
    return p if isinstance(p, int) else None


class DuckDBSink:
    def __init__(self, path: Path | str = ":memory:", flush_every: int = 50_000) -> None:
        self.path = str(path)
        self.flush_every = flush_every
        self.con = duckdb.connect(self.path)
        # one connection shared by writer threads
        self._lock = threading.RLock()
        self._pending: Dict[str, Dict[int, Tuple[str, Any, str]]] = defaultdict(dict)
        rows = self.con.execute(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'main'"
        ).fetchall()
        self._indexes = {r[0] for r in rows}

    # ---------- indexes ----------
    def index_exists(self, index: str) -> bool:
        with self._lock:
            return index in self._indexes

    def create_index(self, index: str, kind: str) -> None:
        with self._lock:
            self.con.execute(
                f"CREATE TABLE {_quoted(index)} ("
                " id BIGINT PRIMARY KEY, kind VARCHAR, parent_id BIGINT, doc VARCHAR)"
            )
            self._indexes.add(index)
        log(f"[sink] created index {index} ({kind})")

    def delete_index(self, index: str) -> bool:
        with self._lock:
            existed = index in self._indexes
            self.con.execute(f"DROP TABLE IF EXISTS {_quoted(index)}")
            self._indexes.discard(index)
            self._pending.pop(index, None)
        return existed

    def _require(self, index: str) -> None:
        if index not in self._indexes:
            raise LookupError(f"no such index: {index}")

    # ---------- documents ----------
    def put_document(self, index: str, kind: str, doc_id: int, doc: Document) -> Dict[str, Any]:
        if not valid_id(doc_id):
            raise InvalidIdentifier(f"Invalid Id {doc_id!r}")
        body = json.dumps(doc)
        with self._lock:
            self._require(index)
            pending = self._pending[index]
            pending[doc_id] = (kind, _parent_of(doc), body)
            if len(pending) >= self.flush_every:
                self._flush(index)
        return {"_index": index, "_id": doc_id, "result": "created"}

    def get_document(self, index: str, kind: str, doc_id: int) -> Dict[str, Any]:
        with self._lock:
            self._require(index)
            hit = self._pending.get(index, {}).get(doc_id)
            if hit is not None:
                return {"_id": doc_id, "found": True, "_source": json.loads(hit[2])}
            row = self.con.execute(
                f"SELECT doc FROM {_quoted(index)} WHERE id = ?", [doc_id]
            ).fetchone()
        if row is None:
            return {"_id": doc_id, "found": False}
        return {"_id": doc_id, "found": True, "_source": json.loads(row[0])}

    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Supports ``{"query": {"term": {field: value}}}`` and ``match_all`` with from/size."""
        query = body.get("query") or {"match_all": {}}
        start = int(body.get("from", 0))
        size = int(body.get("size", 10))
        where, params = "TRUE", []
        if "term" in query:
            (field, value), = query["term"].items()
            if field == "ParentId":
                where, params = "parent_id = ?", [int(value)]
            else:
                _quoted(field)
                where, params = "json_extract_string(doc, ?) = ?", [f"$.{field}", str(value)]
        elif "match_all" not in query:
            raise ValueError(f"unsupported query: {sorted(query)}")

        table = _quoted(index)
        with self._lock:
            self._require(index)
            total = self.con.execute(f"SELECT count(*) FROM {table} WHERE {where}", params).fetchone()[0]
            rows = self.con.execute(
                f"SELECT id, doc FROM {table} WHERE {where} ORDER BY id LIMIT ? OFFSET ?",
                params + [size, start],
            ).fetchall()
        hits = [{"_index": index, "_id": r[0], "_source": json.loads(r[1])} for r in rows]
        return {"hits": {"total": int(total), "hits": hits}}

    def count(self, index: str) -> int:
        with self._lock:
            self._require(index)
            return int(self.con.execute(f"SELECT count(*) FROM {_quoted(index)}").fetchone()[0])

    # ---------- refresh ----------
    def _flush(self, index: str) -> int:
        pending = self._pending.pop(index, None)
        if not pending:
            return 0
        ids: List[int] = list(pending.keys())
        batch = pl.DataFrame(
            {
                "id": ids,
                "kind": [pending[i][0] for i in ids],
                "parent_id": [pending[i][1] for i in ids],
                "doc": [pending[i][2] for i in ids],
            },
            schema={"id": pl.Int64, "kind": pl.Utf8, "parent_id": pl.Int64, "doc": pl.Utf8},
        )
        self.con.register("pending_docs", batch.to_arrow())
        try:
            self.con.execute(
                f"INSERT OR REPLACE INTO {_quoted(index)} SELECT id, kind, parent_id, doc FROM pending_docs"
            )
        finally:
            self.con.unregister("pending_docs")
        return len(ids)

    def refresh_index(self, index: str) -> None:
        with self._lock:
            self._require(index)
            self._flush(index)

    def close(self) -> None:
        with self._lock:
            for index in list(self._pending):
                self._flush(index)
            self.con.close()

    def __enter__(self) -> "DuckDBSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
