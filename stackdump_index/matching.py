# stackdump_index/matching.py
"""
Stemmed word matching of posts against a space separated word list.

A word found in a post title counts the same as a tag. Exclusion matchers also look
at the body, and give answers (which have no title) a pseudo-title cut from the
start of the body.
"""

from __future__ import annotations

import re
import warnings
from functools import lru_cache
from typing import Callable, Set

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning
from nltk.stem import PorterStemmer

from .records import Record
from .utils import log

Matcher = Callable[[Record], bool]

PSEUDO_TITLE_CHARS = 60

_SPLIT = re.compile(r"[^a-z0-9-]+")
_stemmer = PorterStemmer()


@lru_cache(maxsize=200_000)
def stem(word: str) -> str:
    return _stemmer.stem(word)


def strip_html(text: str) -> str:
    if "<" not in text and "&" not in text:
        return text
    with warnings.catch_warnings():
        # short bodies such as "see http://..." trip bs4's "looks like a URL" warning
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        return BeautifulSoup(text, "html.parser").get_text(" ")


def pseudo_title(body: str) -> str:
    text = strip_html(body)
    if len(text) > PSEUDO_TITLE_CHARS:
        return text[:PSEUDO_TITLE_CHARS] + "..."
    return text


def stemmed_words(text: str) -> Set[str]:
    """Lower-cased, stemmed words of `text`; hyphenated words also add their parts."""
    words: Set[str] = set()
    for token in _SPLIT.split(text.lower()):
        if not token:
            continue
        words.add(stem(token))
        if "-" in token:
            words.update(stem(part) for part in token.split("-") if part)
    return words


def make_matcher(query_words: str, when_empty_accept: bool) -> Matcher:
    """Build a predicate telling whether a post mentions any of `query_words`.

    Args:
        query_words: space separated words or tags, e.g. ``"faq site-promotion"``.
        when_empty_accept: True for include filters, False for exclude filters.
            An empty word list makes a constant predicate returning this value.
            Exclude filters additionally match on the post body.

    Returns:
        ``matches(post) -> bool``. If a post cannot be processed the predicate
        logs the problem and returns True.
    """
    if not query_words or not query_words.strip():
        return lambda _post: when_empty_accept

    wanted = [stem(w) for w in query_words.lower().split()]
    for_exclusion = not when_empty_accept

    def matches(post: Record) -> bool:
        try:
            title = post.get("Title") or ""
            body = post.get("Body") or ""
            tags = post.get("Tags") or ""

            if title:
                title_text = strip_html(title)
            elif for_exclusion and body:
                title_text = pseudo_title(body)
            else:
                title_text = ""

            title_words = stemmed_words(title_text) if title_text else set()
            tag_words = stemmed_words(tags) if tags else set()
            body_words = stemmed_words(strip_html(body)) if for_exclusion and body else set()

            return any(w in title_words or w in tag_words or w in body_words for w in wanted)
        except Exception as e:
            post_id = post.get("Id") if isinstance(post, dict) else None
            log(f"[match] failed on post {post_id!r}, treating as a match: {e!r}")
            return True

    return matches
