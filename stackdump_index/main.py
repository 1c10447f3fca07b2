# stackdump_index/main.py
from __future__ import annotations
import argparse
from pathlib import Path
from .config import Config
from .utils import log
from .sink import DuckDBSink
from .questions_stage import step_questions
from .resolve_stage import step_post_ids
from .load_stage import step_extend, step_index, step_index_all

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Select, enrich and index posts from a StackExchange dump")
    p.add_argument('--root', type=Path, required=True, help='Directory with Posts.xml, PostLinks.xml, Votes.xml, ...')
    p.add_argument('--db', type=Path, default=None, help='DuckDB index file (default: root/index.duckdb)')
    p.add_argument('--index-prefix', default='se_', help='Prefix for index names: <prefix><kind>')
    p.add_argument('--include-tags', default='', help='Space separated words/tags selecting seed questions')
    p.add_argument('--exclude-tags', default='', help='Space separated words/tags rejecting posts')
    p.add_argument('--questions', type=Path, default=None, help='Seed ids file (default: root/Questions.json)')
    p.add_argument('--batch-size', type=int, default=20, help='Max sink writes in flight')
    p.add_argument('--answer-fan-out', type=int, default=1000, help='Max answers extended per question')
    p.add_argument('--progress-every', type=int, default=100)
    p.add_argument('--force', action='store_true', help='Recompute id files even if fresh')
    p.add_argument('--do', nargs='+', default=['questions', 'postids', 'index', 'extend'],
                   choices=['questions', 'postids', 'index', 'extend', 'all'],
                   help='Which steps to run; "all" indexes every row unfiltered')
    return p.parse_args(argv)

def build_config(args: argparse.Namespace) -> Config:
    root = args.root.resolve()
    overrides = dict(
        index_prefix=args.index_prefix,
        include_tags=args.include_tags,
        exclude_tags=args.exclude_tags,
        batch_size=args.batch_size,
        answer_fan_out=args.answer_fan_out,
        progress_every=args.progress_every,
        force=args.force,
    )
    cfg = Config.for_root(root, **overrides)
    if args.db is not None:
        cfg.db = args.db
    if args.questions is not None:
        cfg.questions_json = args.questions
    return cfg

def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    cfg = build_config(args)

    log("CONFIG:\n" + cfg.to_json())
    steps = set(args.do)

    if 'questions' in steps:
        step_questions(cfg)

    if 'postids' in steps:
        step_post_ids(cfg)

    if steps & {'index', 'extend', 'all'}:
        with DuckDBSink(cfg.db) as sink:
            if 'all' in steps:
                step_index_all(cfg, sink)
            if 'index' in steps:
                step_index(cfg, sink)
            if 'extend' in steps:
                step_extend(cfg, sink)

    log("Done.")

if __name__ == '__main__':
    main()
