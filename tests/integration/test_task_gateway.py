from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from onthelist.domain.enums import TaskType, TaskCategory, TaskSubcategory
from onthelist.domain.task import TaskDraft
from onthelist.services.change_feed import ChangeKind
from onthelist.services.task_gateway import TaskGateway, TaskNotFound, ConstraintViolation, Unavailable


def _draft(**overrides):
    fields = dict(
        entry="Read Dune",
        name="Dune",
        type=TaskType.SAVE_FOR_LATER,
        category=TaskCategory.RECOMMENDATIONS,
        subcategory=TaskSubcategory.BOOKS,
        who="Anna",
        due_date=datetime(2026, 11, 1, 23, 59, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return TaskDraft(**fields)


def test_round_trip(gateway):
    draft = _draft()
    created = gateway.create(draft)
    fetched = gateway.get(created.id)
    assert fetched == created
    for name in ("entry", "name", "type", "category", "subcategory", "who", "due_date", "completed"):
        assert getattr(fetched, name) == getattr(draft, name)
    assert fetched.created_at.tzinfo is not None


def test_create_accepts_labels_and_rejects_unknown(gateway):
    created = gateway.create(_draft(type="Focus", category="Task", subcategory=""))
    assert created.type is TaskType.FOCUS
    assert created.subcategory is None
    with pytest.raises(ConstraintViolation) as exc_info:
        gateway.create(_draft(category="Chores"))
    assert exc_info.value.field == "category"
    assert gateway.list() == [created]


def test_update_refreshes_updated_at(gateway):
    created = gateway.create(_draft())
    updated = gateway.update(created.id, {"completed": True})
    assert updated.completed is True
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at
    assert updated.completed_at == updated.updated_at


def test_update_rejects_server_owned_fields(gateway):
    created = gateway.create(_draft())
    with pytest.raises(ConstraintViolation):
        gateway.update(created.id, {"created_at": datetime.now(timezone.utc)})
    with pytest.raises(ConstraintViolation):
        gateway.update(created.id, {"due_date": "tomorrow"})
    with pytest.raises(ConstraintViolation):
        gateway.update(created.id, {"completed": None})
    assert gateway.get(created.id) == created


def test_update_and_remove_unknown_id(gateway):
    with pytest.raises(TaskNotFound):
        gateway.update("missing", {"name": "x"})
    with pytest.raises(TaskNotFound):
        gateway.remove("missing")


def test_remove_twice(gateway):
    created = gateway.create(_draft())
    gateway.remove(created.id)
    with pytest.raises(TaskNotFound):
        gateway.remove(created.id)
    with pytest.raises(TaskNotFound):
        gateway.get(created.id)


def test_feed_sees_every_write(gateway):
    events = []
    sub = gateway.subscribe(lambda kind, rec: events.append((kind, rec.id)))
    created = gateway.create(_draft())
    gateway.log_now(created.id)
    gateway.remove(created.id)
    sub.cancel()
    gateway.create(_draft())
    assert events == [
        (ChangeKind.INSERT, created.id),
        (ChangeKind.UPDATE, created.id),
        (ChangeKind.DELETE, created.id),
    ]


def test_list_rejects_unknown_order_column(gateway):
    with pytest.raises(ValueError):
        gateway.list(order_by="who")


def test_operational_error_becomes_unavailable():
    db_mock = Mock()
    db_mock.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
    gateway = TaskGateway(lambda: db_mock)

    with pytest.raises(Unavailable) as exc_info:
        gateway.list()

    assert "connection refused" in str(exc_info.value)
    db_mock.rollback.assert_called_once()
    db_mock.close.assert_called_once()
