"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Dict, Generator, Iterable, List

import pytest
from lxml import etree

from stackdump_index.config import Config
from stackdump_index.sink import DuckDBSink

Q, A = 1, 2

# Seven questions (1, 2, 3, 4, 5, 7, 10). Include filter "widget" selects 1, 2 and 4;
# PostLinks pull in 3. Answers 6 and 8 belong to questions 1 and 2, answer 9 to 5.
POSTS: List[Dict] = [
    {"Id": 1, "PostTypeId": Q, "Title": "How to ask a FAQ about widgets", "Tags": "<faq>",
     "Body": "<p>Where do widget questions go?</p>", "ViewCount": 120, "OwnerUserId": 12},
    {"Id": 2, "PostTypeId": Q, "Title": "Widgets in production", "Tags": "<deployment>",
     "Body": "<p>Our widgets keep crashing.</p>", "ViewCount": 45, "OwnerUserId": 14},
    {"Id": 3, "PostTypeId": Q, "Title": "Gadget calibration", "Tags": "<gadgets>",
     "Body": "<p>How do I calibrate?</p>", "ViewCount": 7},
    {"Id": 4, "PostTypeId": Q, "Title": "Something else entirely", "Tags": "<widgets><meta>",
     "Body": "<p>Meta discussion.</p>", "ViewCount": 3},
    {"Id": 5, "PostTypeId": Q, "Title": "Unrelated cooking", "Tags": "<cooking>",
     "Body": "<p>Pasta?</p>", "ViewCount": 9, "OwnerUserId": 13},
    {"Id": 6, "PostTypeId": A, "ParentId": 1, "Body": "<p>Use the <b>API</b>.</p>", "OwnerUserId": -1},
    {"Id": 7, "PostTypeId": Q, "Title": "Gardening tips", "Tags": "<garden>", "Body": "<p>Soil.</p>"},
    {"Id": 8, "PostTypeId": A, "ParentId": 2, "Body": "<p>Restart it.</p>"},
    {"Id": 9, "PostTypeId": A, "ParentId": 5, "Body": "<p>Boil water.</p>"},
    {"Id": 10, "PostTypeId": Q, "Title": "Bicycle repair", "Tags": "<bikes>", "Body": "<p>Chain.</p>"},
]

POST_LINKS = [
    {"Id": 1, "PostId": 3, "RelatedPostId": 1, "LinkTypeId": 1},
    {"Id": 2, "PostId": 5, "RelatedPostId": 7, "LinkTypeId": 1},
]

VOTES = [
    {"Id": 1, "PostId": 1, "VoteTypeId": 2},
    {"Id": 2, "PostId": 1, "VoteTypeId": 2},
    {"Id": 3, "PostId": 1, "VoteTypeId": 3},
    {"Id": 4, "PostId": 1, "VoteTypeId": 5},
    {"Id": 5, "PostId": 6, "VoteTypeId": 2},
    {"Id": 6, "PostId": 5, "VoteTypeId": 2},
]

COMMENTS = [
    {"Id": 1, "PostId": 1, "UserId": 10, "Text": "Good question"},
    {"Id": 2, "PostId": 5, "UserId": 11, "Text": "Off topic"},
    {"Id": 3, "PostId": 6, "UserId": -1, "Text": "Migrated"},
]

USERS = [
    {"Id": -1, "DisplayName": "Community"},
    {"Id": 10, "DisplayName": "ten"},
    {"Id": 11, "DisplayName": "eleven"},
    {"Id": 12, "DisplayName": "twelve"},
    {"Id": 13, "DisplayName": "thirteen"},
    {"Id": 14, "DisplayName": "fourteen"},
]


def write_dump(path: Path, root_tag: str, rows: Iterable[Dict]) -> Path:
    root = etree.Element(root_tag)
    for row in rows:
        etree.SubElement(root, "row", {k: str(v) for k, v in row.items()})
    etree.ElementTree(root).write(str(path), encoding="utf-8", xml_declaration=True)
    return path


@pytest.fixture
def dump_dir(tmp_path: Path) -> Path:
    """A complete little dump: Posts, PostLinks, Votes, Comments, Users."""
    write_dump(tmp_path / "Posts.xml", "posts", POSTS)
    write_dump(tmp_path / "PostLinks.xml", "postlinks", POST_LINKS)
    write_dump(tmp_path / "Votes.xml", "votes", VOTES)
    write_dump(tmp_path / "Comments.xml", "comments", COMMENTS)
    write_dump(tmp_path / "Users.xml", "users", USERS)
    return tmp_path


@pytest.fixture
def cfg(dump_dir: Path) -> Config:
    return Config.for_root(dump_dir, index_prefix="testindex_", include_tags="widget")


@pytest.fixture
def sink() -> Generator[DuckDBSink, None, None]:
    s = DuckDBSink(":memory:")
    yield s
    s.close()
