# autotest_ids.py
# Purpose: Validate the id hand-off files and the sink produced by the stackdump_index pipeline.
# Outputs: human-readable console report (+ optional txt report).

from __future__ import annotations
import argparse
import io
import json
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# 3rd-party
try:
    import polars as pl  # type: ignore
except Exception as e:
    print("[FATAL] polars is required: pip install polars")
    raise

try:
    import duckdb  # type: ignore
except Exception:
    duckdb = None  # sink checks will be skipped

# ---------------------- helpers ----------------------

@dataclass
class CheckResult:
    name: str
    status: str  # PASS | FAIL | WARN | SKIP
    details: List[str] = field(default_factory=list)
    duration_s: float = 0.0

    def fmt(self) -> str:
        s = f"[{self.status}] {self.name} ({self.duration_s:.2f}s)\n"
        for line in self.details:
            s += f"  - {line}\n"
        return s


class Suite:
    def __init__(self) -> None:
        self.results: List[CheckResult] = []

    def add(self, res: CheckResult) -> None:
        self.results.append(res)

    def summary(self) -> Tuple[int, int, int, int]:
        p = sum(1 for r in self.results if r.status == "PASS")
        f = sum(1 for r in self.results if r.status == "FAIL")
        w = sum(1 for r in self.results if r.status == "WARN")
        s = sum(1 for r in self.results if r.status == "SKIP")
        return p, f, w, s

    def render(self) -> str:
        out = io.StringIO()
        print("=" * 78, file=out)
        print("stackdump_index – Autotest for id files and sink", file=out)
        print("=" * 78, file=out)
        for r in self.results:
            print(r.fmt(), end="", file=out)
        p, f, w, s = self.summary()
        print("-" * 78, file=out)
        print(f"Summary: PASS={p}  FAIL={f}  WARN={w}  SKIP={s}", file=out)
        return out.getvalue()


@dataclass
class Env:
    root: Path
    db: Path
    prefix: str = "se_"

    @property
    def id_files(self) -> Dict[str, Path]:
        return {
            "questions": self.root / "Questions.json",
            "post_ids": self.root / "PostIds.json",
            "extended": self.root / "ExtendedQuestionIds.json",
        }


def load_id_file(path: Path) -> Tuple[Optional[List[int]], List[str]]:
    """Return (ids, problems). ids is None when the file is unusable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        return None, [f"{path.name}: not valid JSON: {e}"]
    problems: List[str] = []
    if isinstance(data, dict) and "postIds" in data:
        problems.append(f"{path.name}: legacy {{'postIds': [...]}} wrapper, expected bare array")
        data = data["postIds"]
    if not isinstance(data, list):
        return None, problems + [f"{path.name}: top level is {type(data).__name__}, expected array"]
    bad = [x for x in data if not isinstance(x, int) or isinstance(x, bool)]
    if bad:
        return None, problems + [f"{path.name}: {len(bad)} non-integer entries, e.g. {bad[:3]!r}"]
    return data, problems


# ---------------------- checks ----------------------

def check_id_files(env: Env) -> Tuple[CheckResult, Dict[str, List[int]]]:
    t0 = time.perf_counter()
    loaded: Dict[str, List[int]] = {}
    problems: List[str] = []
    ok: List[str] = []
    for name, path in env.id_files.items():
        if not path.exists():
            problems.append(f"Missing: {path}")
            continue
        ids, issues = load_id_file(path)
        problems.extend(issues)
        if ids is None:
            continue
        s = pl.Series(name, ids, dtype=pl.Int64)
        dups = s.len() - s.n_unique()
        neg = int((s < 0).sum())
        if dups:
            problems.append(f"{path.name}: {dups} duplicate ids")
        if neg:
            problems.append(f"{path.name}: {neg} negative ids")
        loaded[name] = ids
        ok.append(f"{path.name}: {len(ids):,} ids")
    dur = time.perf_counter() - t0
    if problems:
        return CheckResult("id files shape", "FAIL", problems, dur), loaded
    return CheckResult("id files shape", "PASS", ok, dur), loaded


def check_id_consistency(ids: Dict[str, List[int]]) -> CheckResult:
    t0 = time.perf_counter()
    if "post_ids" not in ids or "extended" not in ids:
        return CheckResult("id set consistency", "SKIP", ["PostIds.json / ExtendedQuestionIds.json unavailable"])
    post_ids = set(ids["post_ids"])
    extended = set(ids["extended"])
    details: List[str] = []
    stray = extended - post_ids
    if stray:
        details.append(f"{len(stray):,} extended question ids missing from PostIds.json, e.g. {sorted(stray)[:5]}")
        return CheckResult("id set consistency", "FAIL", details, time.perf_counter() - t0)

    details.append(f"ExtendedQuestionIds ⊆ PostIds ({len(extended):,} ⊆ {len(post_ids):,})")
    if "questions" in ids:
        seed = set(ids["questions"])
        rejected = seed - extended
        linked = extended - seed
        details.append(f"seed questions rejected by exclude filter: {len(rejected):,}")
        details.append(f"posts pulled in through links: {len(linked):,}")
        details.append(f"answers admitted (upper bound): {len(post_ids - extended):,}")
    return CheckResult("id set consistency", "PASS", details, time.perf_counter() - t0)


def check_sink(env: Env, ids: Dict[str, List[int]]) -> CheckResult:
    t0 = time.perf_counter()
    if duckdb is None:
        return CheckResult("sink contents", "SKIP", ["duckdb not installed"])
    if not env.db.exists():
        return CheckResult("sink contents", "SKIP", [f"Missing: {env.db}"])
    con = duckdb.connect(env.db.as_posix(), read_only=True)
    try:
        tables = {r[0] for r in con.execute(
            "SELECT table_name FROM information_schema.tables WHERE table_schema='main'").fetchall()}
        post_index = env.prefix + "post"
        if post_index not in tables:
            return CheckResult("sink contents", "SKIP", [f"index {post_index} not found"], time.perf_counter() - t0)

        problems: List[str] = []
        details: List[str] = []
        for kind in ("post", "comment", "postlink", "user"):
            index = env.prefix + kind
            if index in tables:
                n = con.execute(f'SELECT count(*) FROM "{index}"').fetchone()[0]
                details.append(f"{index}: {n:,} documents")

        post_ids = set(ids.get("post_ids", []))
        stored = con.execute(f'SELECT id FROM "{post_index}"').pl()
        if post_ids:
            outside = stored.filter(~pl.col("id").is_in(list(post_ids)))
            if outside.height:
                problems.append(f"{outside.height:,} posts in {post_index} are not in PostIds.json, "
                                f"e.g. {outside.get_column('id').head(5).to_list()}")

        answers = con.execute(
            f"SELECT json_extract_string(doc, '$.QuestionTitle') IS NOT NULL AS extended "
            f'FROM "{post_index}" WHERE parent_id IS NOT NULL').pl()
        if answers.height:
            n_ext = int(answers.get_column("extended").sum())
            details.append(f"answers carrying QuestionTitle: {n_ext:,}/{answers.height:,}")
            if n_ext == 0:
                dur = time.perf_counter() - t0
                return CheckResult("sink contents", "WARN", details + ["no answer was extended; run --do extend"], dur)
    finally:
        con.close()

    dur = time.perf_counter() - t0
    if problems:
        return CheckResult("sink contents", "FAIL", problems + details, dur)
    return CheckResult("sink contents", "PASS", details, dur)


# ---------------------- main --------------------------------------------------

def main() -> int:
    ap = argparse.ArgumentParser(description="stackdump_index – Autotest for id files and sink")
    ap.add_argument("--root", type=Path, required=True, help="Dump directory holding the *.json id files")
    ap.add_argument("--db", type=Path, default=None, help="DuckDB sink file (default: root/index.duckdb)")
    ap.add_argument("--index-prefix", default="se_")
    ap.add_argument("--report", type=Path, default=None, help="Optional path to write a txt report")
    args = ap.parse_args()

    root = args.root.resolve()
    env = Env(root=root, db=(args.db or root / "index.duckdb"), prefix=args.index_prefix)

    suite = Suite()
    shape, ids = check_id_files(env)
    suite.add(shape)
    suite.add(check_id_consistency(ids))
    suite.add(check_sink(env, ids))

    report = suite.render()
    print(report)
    if args.report is not None:
        args.report.write_text(report, encoding="utf-8")

    # Exit code: 0 unless any FAIL
    p, f, w, s = suite.summary()
    return 1 if f > 0 else 0


if __name__ == "__main__":
    sys.exit(main())
