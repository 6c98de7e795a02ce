"""Tests for the commit graph arena."""

from datetime import UTC, datetime, timedelta

import pytest

from xfiles.dag import CommitGraph
from xfiles.exceptions import CorruptIndexError, NotFoundError
from xfiles.models import Commit

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def commit(commit_id: str, *parents: str, offset: int = 0) -> Commit:
    return Commit(
        id=commit_id,
        path="memory.txt",
        parent_ids=list(parents),
        timestamp=T0 + timedelta(seconds=offset),
        author="tester",
        content_hash="h",
    )


@pytest.fixture
def linear():
    return CommitGraph(
        "root",
        [commit("c1", "root", offset=1), commit("c2", "c1", offset=2), commit("c3", "c2", offset=3)],
    )


class TestLineage:
    """First-parent walks from a head to the root."""

    def test_root_to_head_order(self, linear):
        assert [c.id for c in linear.lineage("c3")] == ["c1", "c2", "c3"]

    def test_intermediate_head(self, linear):
        assert [c.id for c in linear.lineage("c2")] == ["c1", "c2"]

    def test_root_has_empty_lineage(self, linear):
        assert linear.lineage("root") == []

    def test_dangling_parent(self):
        graph = CommitGraph("root", [commit("c2", "c1")])

        with pytest.raises(CorruptIndexError):
            graph.lineage("c2")

    def test_cycle_detected(self):
        graph = CommitGraph("root", [commit("a", "b"), commit("b", "a")])

        with pytest.raises(CorruptIndexError):
            graph.lineage("a")

    def test_parentless_commit(self):
        graph = CommitGraph("root", [commit("c1")])

        with pytest.raises(CorruptIndexError):
            graph.lineage("c1")


class TestGraphQueries:
    """Arena lookups, ancestors and heads."""

    def test_get_and_contains(self, linear):
        assert linear.get("c2").id == "c2"
        assert "c2" in linear
        assert "c9" not in linear
        assert len(linear) == 3

    def test_get_missing(self, linear):
        with pytest.raises(NotFoundError) as exc_info:
            linear.get("c9")
        assert exc_info.value.kind == "commit"

    def test_ancestors_nearest_first(self, linear):
        assert [c.id for c in linear.ancestors("c3")] == ["c2", "c1"]

    def test_ancestors_follow_every_parent(self):
        graph = CommitGraph(
            "root",
            [
                commit("a", "root", offset=1),
                commit("b", "a", offset=2),
                commit("c", "a", offset=3),
                commit("m", "b", "c", offset=4),
            ],
        )

        assert {c.id for c in graph.ancestors("m")} == {"a", "b", "c"}

    def test_single_head(self, linear):
        assert [c.id for c in linear.heads()] == ["c3"]
        assert linear.is_forked() is False

    def test_fork_reported(self):
        graph = CommitGraph(
            "root",
            [commit("a", "root", offset=1), commit("b", "a", offset=3), commit("c", "a", offset=2)],
        )

        assert [c.id for c in graph.heads()] == ["c", "b"]
        assert graph.is_forked() is True

    def test_empty_graph(self):
        graph = CommitGraph("root")

        assert graph.heads() == []
        assert graph.is_forked() is False
