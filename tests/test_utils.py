"""Unit tests for utility functions."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from recipeshare.utils import (
    default_username,
    ensure_list,
    mean,
    new_id,
    normalize_tags,
    parse_datetime,
    suffixed_username,
    utc_now,
    utc_now_iso,
)


class TestDatetimeUtils:
    """Tests for datetime helpers."""

    def test_parse_z_suffix(self):
        dt = parse_datetime("2024-01-15T10:30:00Z")

        assert dt == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_offset_converted_to_utc(self):
        dt = parse_datetime("2024-01-15T12:30:00+02:00")

        assert dt == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_naive_assumed_utc(self):
        assert parse_datetime(datetime(2024, 1, 1)).tzinfo == UTC

    def test_parse_aware_datetime(self):
        eastern = timezone(timedelta(hours=-5))
        dt = parse_datetime(datetime(2024, 1, 1, 5, tzinfo=eastern))

        assert dt == datetime(2024, 1, 1, 10, tzinfo=UTC)

    def test_parse_none(self):
        assert parse_datetime(None) is None

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == UTC

    def test_utc_now_iso_sorts_lexically(self):
        stamp = utc_now_iso()

        assert stamp.endswith("Z")
        # Fixed width: microseconds are always present
        assert len(stamp) == len("2024-01-15T10:30:00.000000Z")


class TestUsernames:
    """Tests for username derivation."""

    def test_name_wins(self):
        assert default_username("Ada Lovelace", "ada@example.com") == "Ada Lovelace"

    def test_email_local_part(self):
        assert default_username(None, "grace.hopper@navy.mil") == "grace.hopper"

    def test_fallback(self):
        assert default_username(None, None) == "User"
        assert default_username("", "") == "User"

    def test_strips_invalid_characters(self):
        assert default_username("<script>", None) == "script"
        assert default_username("!!!", "x@y.z") == "x"

    def test_truncated(self):
        assert len(default_username("a" * 100, None)) == 64

    def test_suffixes(self):
        assert suffixed_username("ada", 1) == "ada"
        assert suffixed_username("ada", 2) == "ada-2"


class TestMisc:
    """Tests for small helpers."""

    def test_new_id_unique(self):
        ids = {new_id() for _ in range(100)}

        assert len(ids) == 100
        assert all(len(i) == 32 for i in ids)

    def test_normalize_tags(self):
        assert normalize_tags([" Quick", "quick", "Healthy ", ""]) == ["quick", "healthy"]
        assert normalize_tags(None) == []

    def test_mean(self):
        assert mean([5, 3]) == 4.0
        assert mean([]) == 0.0

    def test_ensure_list(self):
        assert ensure_list(None) == []
        assert ensure_list("a") == ["a"]
        assert ensure_list([1, 2]) == [1, 2]
