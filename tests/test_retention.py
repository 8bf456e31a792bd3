"""Tests for selecting and deleting old objects."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from s3up.client import ObjectStoreClient
from s3up.exceptions import ProtocolError
from s3up.models.objects import StoredObject
from s3up.retention import filter_objects_for_prune, parse_age, prune

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def aged(key: str, age: timedelta, size: int = 100) -> StoredObject:
    return StoredObject(key=key, size=size, last_modified=NOW - age)


@pytest.mark.parametrize(
    "age,expected",
    [
        ("1d", timedelta(days=1)),
        ("12h", timedelta(hours=12)),
        ("30m", timedelta(minutes=30)),
        ("5", timedelta(days=5)),
        ("0", timedelta(0)),
        ("0d", timedelta(0)),
        ("abc", timedelta(0)),
        ("1w", timedelta(0)),
        ("", timedelta(0)),
    ],
)
def test_parse_age(age, expected):
    assert parse_age(age) == expected


class TestFilter:
    def test_keep_last_and_older_than_combined(self):
        objects = [aged(f"day-{d}", timedelta(days=d)) for d in (3, 21, 1, 11, 2)]

        selected = filter_objects_for_prune(objects, older_than_days=2, keep_last=3, min_age="0d", now=NOW)

        assert [o.key for o in selected] == ["day-11", "day-21"]

    def test_min_age_default_protects_recent_objects(self):
        objects = [aged("recent", timedelta(hours=12)), aged("old", timedelta(days=3))]

        assert [o.key for o in filter_objects_for_prune(objects, older_than_days=0, now=NOW)] == ["old"]
        assert [o.key for o in filter_objects_for_prune(objects, keep_last=0, now=NOW)] == ["old"]

    def test_keep_last_only(self):
        objects = [aged(f"o{d}", timedelta(days=d)) for d in range(2, 8)]

        selected = filter_objects_for_prune(objects, keep_last=2, now=NOW)

        assert [o.key for o in selected] == ["o4", "o5", "o6", "o7"]

    def test_keep_last_larger_than_listing(self):
        objects = [aged("a", timedelta(days=5)), aged("b", timedelta(days=6))]
        assert filter_objects_for_prune(objects, keep_last=10, now=NOW) == []

    def test_older_than_only(self):
        objects = [aged("young", timedelta(days=5)), aged("exact", timedelta(days=7)), aged("old", timedelta(days=8))]

        selected = filter_objects_for_prune(objects, older_than_days=7, now=NOW)

        assert [o.key for o in selected] == ["old"]

    def test_empty(self):
        assert filter_objects_for_prune([], older_than_days=1, now=NOW) == []


class TestPrune:
    @pytest.fixture
    def client(self):
        client = MagicMock(spec=ObjectStoreClient)
        client.list_all_objects.return_value = [
            aged("logs/a", timedelta(days=1), size=10),
            aged("logs/b", timedelta(days=10), size=20),
            aged("logs/c", timedelta(days=20), size=30),
        ]
        return client

    def test_dry_run(self, client):
        result = prune(client, "logs/", older_than_days=5, dry_run=True, now=NOW)

        assert result.dry_run
        assert [o.key for o in result.to_delete] == ["logs/b", "logs/c"]
        assert result.count == 2
        assert result.total_bytes == 50
        client.delete_objects.assert_not_called()
        client.list_all_objects.assert_called_once_with("logs/")

    def test_deletes(self, client):
        error = ProtocolError("DeleteObject", 403, "AccessDenied")
        client.delete_objects.return_value = (["logs/b"], {"logs/c": error})

        result = prune(client, "logs/", older_than_days=5, now=NOW)

        client.delete_objects.assert_called_once_with(["logs/b", "logs/c"])
        assert not result.dry_run
        assert result.deleted == ["logs/b"]
        assert result.errors == {"logs/c": error}
        assert result.deleted_bytes == 20

    def test_requires_prefix(self, client):
        with pytest.raises(ValueError):
            prune(client, "", older_than_days=5)

    def test_requires_a_criterion(self, client):
        with pytest.raises(ValueError):
            prune(client, "logs/")
