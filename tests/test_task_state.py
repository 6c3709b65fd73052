import datetime

import pytest

from media_api.errors import InvalidTransition, TaskNotFound
from media_api.state import InMemoryTaskStore, Operation, TaskStatus


def test_create_starts_pending(store: InMemoryTaskStore):
    task = store.create(Operation.merge)
    assert task.status == TaskStatus.pending
    assert task.output_path is None and task.error is None
    assert store.get(task.id) is task
    assert store.create(Operation.merge).id != task.id


def test_happy_path_transitions(store: InMemoryTaskStore):
    task = store.create(Operation.trim)
    store.update(task.id, TaskStatus.processing)
    store.update(task.id, TaskStatus.done, output_path="/tmp/x_output.mp4", output_filename="trimmed.mp4")
    assert task.status == TaskStatus.done
    assert task.output_filename == "trimmed.mp4"
    assert task.updated_at >= task.created_at


@pytest.mark.parametrize("terminal", [TaskStatus.done, TaskStatus.failed])
@pytest.mark.parametrize("target", list(TaskStatus))
def test_terminal_states_never_change(store: InMemoryTaskStore, terminal, target):
    task = store.create(Operation.download)
    store.update(task.id, TaskStatus.processing)
    store.update(task.id, terminal)
    with pytest.raises(InvalidTransition):
        store.update(task.id, target)
    assert task.status == terminal


def test_pending_cannot_skip_to_done(store: InMemoryTaskStore):
    task = store.create(Operation.download)
    with pytest.raises(InvalidTransition):
        store.update(task.id, TaskStatus.done)
    store.update(task.id, TaskStatus.failed, error="Task cancelled", error_code="cancelled")
    assert task.error_code == "cancelled"


def test_update_missing_task(store: InMemoryTaskStore):
    with pytest.raises(TaskNotFound):
        store.update("nope", TaskStatus.processing)


def test_delete_and_list(store: InMemoryTaskStore):
    a = store.create(Operation.download)
    b = store.create(Operation.convert)
    assert {t.id for t in store.list()} == {a.id, b.id}
    assert store.delete(a.id) is a
    assert store.delete(a.id) is None
    assert store.get(a.id) is None
    assert [t.id for t in store.list()] == [b.id]


def test_purge_expired_uses_creation_time():
    store = InMemoryTaskStore(ttl_seconds=60)
    old = store.create(Operation.download)
    fresh = store.create(Operation.download)
    for task in (old, fresh):
        store.update(task.id, TaskStatus.processing)
        store.update(task.id, TaskStatus.done)
    old.created_at -= datetime.timedelta(seconds=120)

    expired = store.purge_expired()

    assert [t.id for t in expired] == [old.id]
    assert store.get(old.id) is None
    assert store.get(fresh.id) is fresh


def test_purge_without_ttl_keeps_everything(store: InMemoryTaskStore):
    task = store.create(Operation.download)
    task.created_at -= datetime.timedelta(days=30)
    assert store.purge_expired() == []
    assert store.get(task.id) is task


def test_purge_keeps_running_tasks():
    store = InMemoryTaskStore(ttl_seconds=60)
    pending = store.create(Operation.merge)
    running = store.create(Operation.trim)
    failed = store.create(Operation.convert)
    store.update(running.id, TaskStatus.processing)
    store.update(failed.id, TaskStatus.failed, error="HTTP 404", error_code="upstream_status")
    for task in (pending, running, failed):
        task.created_at -= datetime.timedelta(seconds=600)

    expired = store.purge_expired()

    assert [t.id for t in expired] == [failed.id]
    assert store.get(pending.id) is pending
    assert store.get(running.id) is running
