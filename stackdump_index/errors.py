# stackdump_index/errors.py
from __future__ import annotations


class MissingPrerequisiteFile(FileNotFoundError):
    """A dump file needed by a step is not on disk."""


class UnsupportedKind(ValueError):
    """No dump file is known for the requested record kind."""


class InvalidIdentifier(ValueError):
    """Record id is missing or a placeholder (e.g. the -1 community user)."""


class WriteFailure(RuntimeError):
    """A single document could not be written to the sink."""

    def __init__(self, index: str, doc_id, cause: BaseException) -> None:
        super().__init__(f"{index}/{doc_id}: {cause}")
        self.index = index
        self.doc_id = doc_id
        self.cause = cause


class EnrichmentMiss(LookupError):
    """Question backing a set of answers is not in the sink."""
