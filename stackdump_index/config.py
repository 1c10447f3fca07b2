# stackdump_index/config.py
from __future__ import annotations
import dataclasses, json
from dataclasses import dataclass
from pathlib import Path

@dataclass
class Config:
    # roots and paths
    root: Path                          # directory holding Posts.xml, PostLinks.xml, ...
    questions_json: Path                # seed question ids (include filter output)
    post_ids_json: Path                 # resolver post_ids
    extended_ids_json: Path             # resolver extended_question_ids
    db: Path                            # DuckDB file backing the sink
    index_prefix: str = "se_"

    # filters, space separated
    include_tags: str = ""
    exclude_tags: str = ""

    # sink fan-out
    batch_size: int = 20                # max writes in flight
    answer_fan_out: int = 1000          # max answers fetched per question

    # progress callback cadence (records)
    progress_every: int = 100

    force: bool = False

    def to_json(self) -> str:
        return json.dumps(dataclasses.asdict(self), indent=2, default=str)

    @classmethod
    def for_root(cls, root: Path, **overrides) -> "Config":
        root = Path(root)
        return cls(
            root=root,
            questions_json=root / "Questions.json",
            post_ids_json=root / "PostIds.json",
            extended_ids_json=root / "ExtendedQuestionIds.json",
            db=root / "index.duckdb",
            **overrides,
        )
