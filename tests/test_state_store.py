"""
Unit Tests for the State Store
"""

import pytest
from unittest.mock import patch

from core.state_store import COMPLETED, FAILED, RUNNING, StateStore


@pytest.fixture
def store():
    return StateStore()


class TestTaskLifecycle:
    """Test create / get / update / delete."""

    def test_create_and_get(self, store):
        created = store.create("t1", {"input": "list ./"})

        fetched = store.get("t1")
        assert fetched.id == "t1"
        assert fetched.status == RUNNING
        assert fetched.end_time is None
        assert fetched.data == {"input": "list ./"}
        assert created.start_time == fetched.start_time

    def test_get_unknown(self, store):
        assert store.get("missing") is None

    def test_returned_tasks_are_copies(self, store):
        store.create("t1", {"a": 1})

        task = store.get("t1")
        task.data["a"] = 99
        task.status = "hacked"

        assert store.get("t1").data == {"a": 1}
        assert store.get("t1").status == RUNNING

    def test_update_merges_data_shallowly(self, store):
        store.create("t1", {"a": 1, "nested": {"x": 1}})

        updated = store.update("t1", {"progress": 0.5, "data": {"b": 2, "nested": {"y": 2}}})

        assert updated.progress == 0.5
        assert updated.data == {"a": 1, "b": 2, "nested": {"y": 2}}

    def test_update_caller_defined_status(self, store):
        store.create("t1")
        assert store.update("t1", {"status": "waiting_for_user"}).status == "waiting_for_user"

    def test_update_unknown_task(self, store):
        assert store.update("missing", {"progress": 1.0}) is None

    def test_update_ignores_immutable_fields(self, store):
        created = store.create("t1")

        updated = store.update("t1", {"id": "other", "start_time": 0, "progress": 0.5})

        assert updated.id == "t1"
        assert updated.start_time == created.start_time
        assert updated.progress == 0.5
        assert store.get("other") is None

    def test_complete_and_fail(self, store):
        store.create("ok")
        store.create("bad")

        done = store.complete("ok", {"route": "direct"})
        failed = store.fail("bad", "Permission denied")

        assert done.status == COMPLETED
        assert done.end_time is not None
        assert done.progress == 1.0
        assert done.data["route"] == "direct"
        assert failed.status == FAILED
        assert failed.data["error"] == "Permission denied"

    def test_delete(self, store):
        store.create("t1")
        assert store.delete("t1") is True
        assert store.delete("t1") is False
        assert store.get("t1") is None

    def test_list_in_creation_order(self, store):
        for task_id in ("b", "a", "c"):
            store.create(task_id)
        assert [t.id for t in store.list()] == ["b", "a", "c"]


class TestCleanup:

    def test_removes_only_old_finished_tasks(self, store):
        """A completed task older than max age goes; a running one of the same age stays."""
        max_age_ms = 1000
        now = 1_000_000
        old = now - 2 * max_age_ms

        with patch("core.state_store.now_ms", return_value=old):
            store.create("finished")
            store.create("running")
            store.complete("finished")

        with patch("core.state_store.now_ms", return_value=now):
            removed = store.cleanup(max_age_ms)

        assert removed == 1
        assert store.get("finished") is None
        assert store.get("running").status == RUNNING

    def test_keeps_recent_finished_tasks(self, store):
        with patch("core.state_store.now_ms", return_value=10_000):
            store.create("t1")
            store.fail("t1", "boom")

        with patch("core.state_store.now_ms", return_value=10_500):
            assert store.cleanup(1000) == 0

        assert store.get("t1") is not None
