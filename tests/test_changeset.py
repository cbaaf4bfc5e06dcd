"""Unit tests for changeset.py - nested field updates."""

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime

import pytest

from changeset import (
    Change,
    Changeset,
    FieldPathError,
    build_sync_changeset,
    format_sync_time,
    get_nested_field,
    set_nested_field,
)

COMMIT_PATH = ("metadata", "annotations", "ernesto.0x42.in/commit-hash")


class TestSetNestedField:
    """Tests for set_nested_field."""

    def test_creates_missing_maps(self):
        """Intermediate maps are created when absent."""
        record = {"metadata": {"name": "repo-a"}}
        set_nested_field(record, "abc123", COMMIT_PATH)
        assert record["metadata"]["annotations"] == {
            "ernesto.0x42.in/commit-hash": "abc123"
        }
        assert record["metadata"]["name"] == "repo-a"

    def test_replaces_none_with_map(self):
        record = {"metadata": {"annotations": None}}
        set_nested_field(record, "abc123", COMMIT_PATH)
        assert record["metadata"]["annotations"]["ernesto.0x42.in/commit-hash"] == "abc123"

    def test_keeps_sibling_keys(self):
        record = {"metadata": {"annotations": {"other": "value"}}}
        set_nested_field(record, "abc123", COMMIT_PATH)
        assert record["metadata"]["annotations"] == {
            "other": "value",
            "ernesto.0x42.in/commit-hash": "abc123",
        }

    def test_dotted_key_is_single_segment(self):
        record = {}
        set_nested_field(record, "x", ("metadata", "annotations", "a.b/c"))
        assert record == {"metadata": {"annotations": {"a.b/c": "x"}}}

    def test_non_map_in_path_raises(self):
        record = {"metadata": {"annotations": "not-a-map"}}
        with pytest.raises(FieldPathError) as exc_info:
            set_nested_field(record, "abc123", COMMIT_PATH)
        assert "metadata.annotations" in str(exc_info.value)
        assert record["metadata"]["annotations"] == "not-a-map"

    def test_empty_path_raises(self):
        with pytest.raises(FieldPathError):
            set_nested_field({}, "x", ())


class TestGetNestedField:
    def test_present(self):
        assert get_nested_field({"a": {"b": 1}}, "a", "b") == 1

    def test_missing(self):
        assert get_nested_field({"a": {}}, "a", "b") is None
        assert get_nested_field({"a": "str"}, "a", "b") is None


class TestChangeset:
    """Tests for Changeset.apply."""

    def test_apply_returns_copy(self, sample_record):
        changeset = Changeset().add(COMMIT_PATH, "abc123")
        updated = changeset.apply(sample_record)
        assert get_nested_field(updated, *COMMIT_PATH) == "abc123"
        assert "annotations" not in sample_record["metadata"]

    def test_failed_change_writes_nothing(self):
        record = {"metadata": {"labels": {}}, "status": "flat"}
        changeset = Changeset(
            [
                Change(("metadata", "labels", "synced"), "true"),
                Change(("status", "commit"), "abc123"),
            ]
        )
        with pytest.raises(FieldPathError):
            changeset.apply(record)
        assert record == {"metadata": {"labels": {}}, "status": "flat"}

    def test_apply_is_idempotent(self, sample_record):
        changeset = build_sync_changeset(
            "abc123", "ernesto.0x42.in/", now=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        once = changeset.apply(sample_record)
        twice = changeset.apply(once)
        assert once == twice

    def test_len_and_iter(self):
        changeset = Changeset().add(("a",), 1).add(("b",), 2)
        assert len(changeset) == 2
        assert [c.path for c in changeset] == [("a",), ("b",)]


class TestSyncChangeset:
    """Tests for build_sync_changeset and format_sync_time."""

    def test_format_sync_time_rfc1123(self):
        now = datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc)
        assert format_sync_time(now) == "Mon, 02 Jan 2006 15:04:05 GMT"

    def test_format_sync_time_converts_to_gmt(self):
        now = datetime(2006, 1, 2, 17, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert format_sync_time(now) == "Mon, 02 Jan 2006 15:04:05 GMT"

    def test_format_sync_time_defaults_to_now(self):
        parsed = parsedate_to_datetime(format_sync_time())
        assert abs(datetime.now(timezone.utc) - parsed) < timedelta(seconds=5)

    def test_build_sync_changeset(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        changes = list(build_sync_changeset("abc123", "ernesto.0x42.in/", now=now))
        assert changes == [
            Change(
                ("metadata", "annotations", "ernesto.0x42.in/last-sync-time"),
                "Mon, 01 Jan 2024 00:00:00 GMT",
            ),
            Change(COMMIT_PATH, "abc123"),
        ]

    def test_custom_prefix(self):
        changes = list(build_sync_changeset("abc123", "example.com/"))
        assert changes[1].path[-1] == "example.com/commit-hash"
