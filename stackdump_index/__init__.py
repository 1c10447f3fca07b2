"""
stackdump_index: offline pipeline deciding which StackExchange dump rows get indexed:
tag-filtered seed questions, link/answer expansion with exclude filtering,
vote totals, filtered and enriched loads into a document sink.
"""
from .config import Config
from .matching import make_matcher, stemmed_words
from .votes_stage import total_votes
from .questions_stage import question_ids_by_tag, step_questions
from .resolve_stage import PostSet, resolve_post_set, expand_links, classify_posts, step_post_ids
from .load_stage import load_by_type, extend_answers_from_questions, index_all, step_index, step_extend
from .sink import DuckDBSink, Sink

__all__ = [
    "Config",
    "make_matcher",
    "stemmed_words",
    "total_votes",
    "question_ids_by_tag",
    "step_questions",
    "PostSet",
    "resolve_post_set",
    "expand_links",
    "classify_posts",
    "step_post_ids",
    "load_by_type",
    "extend_answers_from_questions",
    "index_all",
    "step_index",
    "step_extend",
    "DuckDBSink",
    "Sink",
]
