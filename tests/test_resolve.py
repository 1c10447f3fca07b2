"""Tests for stackdump_index/resolve_stage.py - post set resolution."""

from pyroaring import BitMap

from stackdump_index.matching import make_matcher
from stackdump_index.records import RecordReader
from stackdump_index.resolve_stage import PostSet, classify_posts, expand_links, resolve_post_set

NO_EXCLUDE = make_matcher("", False)


def link(a, b):
    return {"PostId": a, "RelatedPostId": b}


def question(i, title="question", **kw):
    return {"Id": i, "PostTypeId": 1, "Title": title, **kw}


def answer(i, parent, body="<p>an answer</p>"):
    return {"Id": i, "PostTypeId": 2, "ParentId": parent, "Body": body}


class TestExpandLinks:
    def test_either_endpoint_pulls_in_the_other(self) -> None:
        ps = PostSet.from_seed([1, 2])
        hits = expand_links(ps, [1, 2], [link(1, 10), link(20, 2), link(30, 40)])
        assert hits == 2
        assert set(ps.post_ids) == {1, 2, 10, 20}
        assert set(ps.extended_question_ids) == {1, 2, 10, 20}

    def test_uses_seed_snapshot_not_growing_set(self) -> None:
        # 3 is pulled in by the first link; the second link must not chain from it
        ps = PostSet.from_seed([1])
        expand_links(ps, [1], [link(1, 3), link(3, 9)])
        assert set(ps.extended_question_ids) == {1, 3}

    def test_idempotent(self) -> None:
        links = [link(1, 10), link(11, 1), link(2, 12)]
        once = PostSet.from_seed([1, 2])
        expand_links(once, [1, 2], links)
        twice = PostSet.from_seed([1, 2])
        expand_links(twice, [1, 2], links)
        expand_links(twice, [1, 2], links)
        assert twice.extended_question_ids == once.extended_question_ids
        assert twice.post_ids == once.post_ids

    def test_link_between_two_seeds_counts_both_ways(self) -> None:
        ps = PostSet.from_seed([1, 2])
        assert expand_links(ps, [1, 2], [link(1, 2)]) == 2
        assert set(ps.post_ids) == {1, 2}

    def test_bad_endpoints_are_skipped(self) -> None:
        ps = PostSet.from_seed([1])
        expand_links(ps, [1], [link(1, -1), link(1, None), {"PostId": 1}])
        assert set(ps.post_ids) == {1}


class TestClassifyPosts:
    def test_admits_answers_of_extended_questions(self) -> None:
        ps = PostSet.from_seed([1])
        n = classify_posts(ps, [question(1), answer(5, 1), answer(6, 2)], NO_EXCLUDE)
        assert n == 1 and ps.admitted_answers == 1
        assert set(ps.post_ids) == {1, 5}

    def test_excluded_question_leaves_both_sets(self) -> None:
        ps = PostSet.from_seed([1, 2])
        classify_posts(ps, [question(1, "spam offer"), question(2, "fine")], make_matcher("spam", False))
        assert set(ps.post_ids) == {2}
        assert set(ps.extended_question_ids) == {2}

    def test_question_outside_extended_is_untouched(self) -> None:
        ps = PostSet.from_seed([1])
        classify_posts(ps, [question(3, "spam")], make_matcher("spam", False))
        assert set(ps.post_ids) == {1}

    def test_excluded_answer_is_not_admitted(self) -> None:
        ps = PostSet.from_seed([1])
        classify_posts(ps, [question(1), answer(5, 1, "<p>buy spam now</p>"), answer(6, 1)],
                       make_matcher("spam", False))
        assert set(ps.post_ids) == {1, 6}
        assert ps.admitted_answers == 1

    def test_answer_before_parent_rejection_stays_admitted(self) -> None:
        # stream order decides: 5 is visited while 1 is still extended, 7 after 1 is dropped
        ps = PostSet.from_seed([1])
        stream = [answer(5, 1), question(1, "spam question"), answer(7, 1)]
        n = classify_posts(ps, stream, make_matcher("spam", False))
        assert n == 1
        assert set(ps.post_ids) == {5}
        assert set(ps.extended_question_ids) == set()

    def test_linked_non_question_still_parents_answers(self) -> None:
        ps = PostSet.from_seed([1])
        expand_links(ps, [1], [link(1, 50)])
        classify_posts(ps, [answer(50, 1), answer(51, 50)], NO_EXCLUDE)
        assert {50, 51} <= set(ps.post_ids)

    def test_progress_uses_posts_description(self) -> None:
        calls = []
        classify_posts(PostSet.from_seed([1]), [question(1)] * 5, NO_EXCLUDE,
                       on_progress=lambda *a: calls.append(a), every=2)
        assert [c[0] for c in calls] == [2, 4, 5]
        assert calls[0][2] == 40.0
        assert all(c[3] == "% Posts processed" for c in calls)


def test_resolve_post_set_on_dump(dump_dir) -> None:
    ps = resolve_post_set(
        [1, 2, 4],
        RecordReader(dump_dir / "PostLinks.xml"),
        RecordReader(dump_dir / "Posts.xml"),
        NO_EXCLUDE,
    )
    assert set(ps.post_ids) >= {1, 2, 3, 4, 6, 8}
    assert set(ps.extended_question_ids) >= {1, 2, 3, 4}
    assert ps.admitted_answers == 2
    assert 9 not in ps.post_ids


def test_resolve_post_set_with_exclude(dump_dir) -> None:
    # "production" only appears in the title of question 2
    ps = resolve_post_set(
        BitMap([1, 2, 4]),
        RecordReader(dump_dir / "PostLinks.xml"),
        RecordReader(dump_dir / "Posts.xml"),
        make_matcher("production", False),
    )
    assert set(ps.post_ids) == {1, 3, 4, 6}
    assert set(ps.extended_question_ids) == {1, 3, 4}
    assert ps.admitted_answers == 1
