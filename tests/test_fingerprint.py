"""Tests for fingerprint.py -- content hashing and path comparison."""

import hashlib

from media_extras.fingerprint import content_hash, path_equals


class TestContentHash:
    def test_sha256_of_utf8(self):
        assert content_hash("désc") == hashlib.sha256("désc".encode("utf-8")).hexdigest()

    def test_one_byte_difference(self):
        assert content_hash("desc-v1") != content_hash("desc-v2")

    def test_deterministic(self):
        assert content_hash("x") == content_hash("x")


class TestPathEquals:
    def test_identical(self):
        assert path_equals("Season 1/e1.nfo", "Season 1/e1.nfo")

    def test_dot_segments(self):
        assert path_equals("Season 1/./e1.nfo", "Season 1/e1.nfo")
        assert path_equals("Season 1/../Season 1/e1.nfo", "Season 1/e1.nfo")

    def test_different(self):
        assert not path_equals("Season 1/e1.nfo", "Season 1/e2.nfo")
