"""
Tests for the SQLAlchemy room store.

Tests:
- get / set / update / delete
- query_by_field scoped to a parent
- Change notifications
- Server timestamps
- Error conversion
"""

import pytest

from database import Base, Settings
from core.exceptions import RoomNotFound, StoreUnavailable
from core.sql_store import create_store
from core.store import SERVER_TIMESTAMP


class TestDocuments:
    """Basic per-key operations."""

    def test_get_missing(self, store):
        assert store.get("rooms/1234") == (False, {})

    def test_set_overwrites(self, store):
        store.set("rooms/1234", {"a": 1, "b": 2})
        store.set("rooms/1234", {"a": 3})

        assert store.get("rooms/1234") == (True, {"a": 3})

    def test_update_merges(self, store):
        store.set("rooms/1234", {"a": 1, "b": 2})
        store.update("rooms/1234", {"b": 5, "c": 6})

        assert store.get("rooms/1234") == (True, {"a": 1, "b": 5, "c": 6})

    def test_update_missing_document(self, store):
        with pytest.raises(RoomNotFound):
            store.update("rooms/1234", {"phase": "judging"})

    def test_delete(self, store):
        store.set("rooms/1234", {"a": 1})
        store.delete("rooms/1234")
        store.delete("rooms/1234")

        assert store.get("rooms/1234")[0] is False


class TestQueryByField:
    """Filtered queries under a parent key."""

    def test_query_scoped_to_parent(self, store):
        store.set("rooms/1/submissions/1_a", {"round": 1})
        store.set("rooms/1/submissions/2_a", {"round": 2})
        store.set("rooms/1/submissions/1_b", {"round": 1})
        store.set("rooms/2/submissions/1_a", {"round": 1})

        keys = store.query_by_field("rooms/1/submissions", "round", 1)

        assert keys == ["rooms/1/submissions/1_a", "rooms/1/submissions/1_b"]

    def test_query_no_match(self, store):
        assert store.query_by_field("rooms/1/submissions", "round", 1) == []


class TestServerTimestamp:
    """SERVER_TIMESTAMP is resolved on write."""

    def test_timestamp_resolved(self, store):
        store.set("rooms/1", {"createdAt": SERVER_TIMESTAMP})
        created_at = store.get("rooms/1")[1]["createdAt"]

        assert isinstance(created_at, float)

    def test_timestamps_increase(self, store):
        store.set("rooms/1/submissions/a", {"createdAt": SERVER_TIMESTAMP})
        store.set("rooms/1/submissions/b", {"createdAt": SERVER_TIMESTAMP})

        first = store.get("rooms/1/submissions/a")[1]["createdAt"]
        second = store.get("rooms/1/submissions/b")[1]["createdAt"]
        assert second > first


class TestSubscriptions:
    """Change notifications."""

    def test_subscribe_delivers_current_then_changes(self, store):
        events = []
        store.set("rooms/1", {"phase": "submitting"})

        unsubscribe = store.subscribe("rooms/1", lambda exists, value: events.append((exists, value)))
        store.update("rooms/1", {"phase": "judging"})
        store.delete("rooms/1")
        unsubscribe()
        store.set("rooms/1", {"phase": "revealed"})

        assert events == [
            (True, {"phase": "submitting"}),
            (True, {"phase": "judging"}),
            (False, {}),
        ]

    def test_subscribe_missing_document(self, store):
        events = []
        store.subscribe("rooms/404", lambda exists, value: events.append(exists))

        assert events == [False]

    def test_subscribe_children(self, store):
        batches = []
        store.subscribe_children("rooms/1/submissions", lambda rows: batches.append([k for k, _ in rows]))

        store.set("rooms/1/submissions/1_a", {"round": 1})
        store.set("rooms/1/other/x", {"round": 1})
        store.set("rooms/1/submissions/1_b", {"round": 1})
        store.delete("rooms/1/submissions/1_a")

        assert batches == [
            [],
            ["rooms/1/submissions/1_a"],
            ["rooms/1/submissions/1_a", "rooms/1/submissions/1_b"],
            ["rooms/1/submissions/1_b"],
        ]

    def test_failing_subscriber_does_not_break_writes(self, store):
        def broken(exists, value):
            raise RuntimeError("render failed")

        store.subscribe("rooms/1", broken)
        store.set("rooms/1", {"phase": "submitting"})

        assert store.get("rooms/1") == (True, {"phase": "submitting"})

    def test_failed_refresh_after_commit_does_not_fail_write(self, store, monkeypatch):
        batches = []
        store.subscribe_children("rooms/1/submissions", batches.append)

        def unavailable(parent_key):
            raise StoreUnavailable("database is locked")

        monkeypatch.setattr(store, "_children", unavailable)
        store.set("rooms/1/submissions/1_a", {"round": 1})
        store.delete("rooms/1/submissions/1_a")
        store.set("rooms/1/submissions/1_b", {"round": 1})

        assert batches == [[]]
        assert store.get("rooms/1/submissions/1_a") == (False, {})
        assert store.get("rooms/1/submissions/1_b") == (True, {"round": 1})


class TestStoreErrors:
    """Backend failures surface as StoreUnavailable."""

    def test_backend_error_is_store_unavailable(self, store):
        Base.metadata.drop_all(bind=store.engine)

        with pytest.raises(StoreUnavailable):
            store.get("rooms/1")
        with pytest.raises(StoreUnavailable):
            store.set("rooms/1", {"a": 1})

    def test_blank_database_url_rejected(self):
        with pytest.raises(ValueError):
            Settings(database_url="   ")

    def test_create_store_from_settings(self, tmp_path):
        store = create_store(Settings(database_url=f"sqlite:///{tmp_path / 'rooms.db'}"))
        try:
            store.set("rooms/1", {"a": 1})
            assert store.get("rooms/1") == (True, {"a": 1})
        finally:
            store.close()
