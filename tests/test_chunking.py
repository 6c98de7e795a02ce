"""
Tests for content chunking and fingerprinting.

Verifies split sizes, ordering, the empty-content case and the stability
of the fingerprint.
"""

import pytest

from xfiles.chunking import (
    DEFAULT_PAYLOAD_SIZE,
    fingerprint,
    join,
    plan_chunks,
    split,
    verify,
)


class TestFingerprint:
    """Fingerprints are stable SHA-256 hex digests."""

    def test_known_vector(self):
        assert (
            fingerprint(b"abc")
            == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_empty_content(self):
        assert (
            fingerprint(b"")
            == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_different_content_differs(self):
        assert fingerprint(b"Day 1") != fingerprint(b"Day 2")

    def test_verify(self):
        digest = fingerprint(b"hello")
        assert verify(b"hello", digest) is True
        assert verify(b"hellO", digest) is False


class TestSplit:
    """Content is split into slices no larger than the limit."""

    def test_default_limit(self):
        assert DEFAULT_PAYLOAD_SIZE == 280

    def test_short_content_single_slice(self):
        assert split(b"Day 1: agent bootstrapped") == [b"Day 1: agent bootstrapped"]

    def test_exact_multiple(self):
        pieces = split(b"x" * 560, 280)
        assert [len(p) for p in pieces] == [280, 280]

    def test_remainder_last(self):
        pieces = split(b"y" * 700, 280)
        assert [len(p) for p in pieces] == [280, 280, 140]

    def test_empty_content_yields_one_empty_slice(self):
        assert split(b"") == [b""]

    def test_join_restores_content(self):
        content = bytes(range(256)) * 5
        assert join(split(content, 97)) == content

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, limit):
        with pytest.raises(ValueError):
            split(b"data", limit)


class TestPlanChunks:
    """Chunk plans carry index, size and per-slice fingerprint."""

    def test_plans_are_indexed(self):
        plans = plan_chunks(b"a" * 600, 280)

        assert [p.idx for p in plans] == [0, 1, 2]
        assert [p.size for p in plans] == [280, 280, 40]
        assert all(p.hash == fingerprint(p.data) for p in plans)

    def test_empty_content_plan(self):
        plans = plan_chunks(b"")

        assert len(plans) == 1
        assert plans[0].size == 0
        assert plans[0].hash == fingerprint(b"")
