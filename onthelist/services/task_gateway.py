"""Persistence gateway for the ``tasks`` relation.

Wraps the repository with the write semantics the rest of the app relies on:
server-assigned ids and timestamps, ``updated_at`` refreshed on every update,
typed failures, and a change notification after each successful commit.
"""
from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Mapping, Optional
import logging

from sqlalchemy.exc import OperationalError, StatementError
from sqlalchemy.orm import Session

from ..db import models
from ..db.session import SessionFactory
from ..domain.enums import TaxonomyKind, coerce
from ..domain.task import TaskDraft, TaskRecord, MUTABLE_FIELDS, utcnow, ensure_utc
from ..metrics import TASK_WRITE_COUNT
from ..repositories.task_repository import TaskRepository, SqlAlchemyTaskRepository
from .change_feed import ChangeFeed, ChangeKind, ChangeCallback, Subscription

logger = logging.getLogger(__name__)


class TaskNotFound(Exception):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"task {task_id} not found")


class ConstraintViolation(ValueError):
    """A write carried a value the tasks schema does not accept."""

    def __init__(self, field: str, value: Any, message: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(message or f"invalid value for {field}: {value!r}")


class Unavailable(Exception):
    """The database could not be reached."""


_ENUM_FIELDS = {
    "type": (TaxonomyKind.TYPE, False),
    "category": (TaxonomyKind.CATEGORY, False),
    "subcategory": (TaxonomyKind.SUBCATEGORY, True),
}


def _check_enum(field: str, value):
    kind, nullable = _ENUM_FIELDS[field]
    if value is None or value == "":
        if nullable:
            return None
        raise ConstraintViolation(field, value)
    member = coerce(kind, value)
    if member is None:
        raise ConstraintViolation(field, value)
    return member


def _check_changes(changes: Mapping[str, Any]) -> dict:
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        field = sorted(unknown)[0]
        raise ConstraintViolation(field, changes[field], f"field {field!r} cannot be updated")
    cleaned = {}
    for key, value in changes.items():
        if key in _ENUM_FIELDS:
            value = _check_enum(key, value)
        elif key == "due_date":
            if value is not None and not isinstance(value, datetime):
                raise ConstraintViolation(key, value)
            value = ensure_utc(value)
        elif key == "completed":
            if not isinstance(value, bool):
                raise ConstraintViolation(key, value)
        elif key in ("entry", "name", "who"):
            value = "" if value is None and key == "who" else value
            if not isinstance(value, str):
                raise ConstraintViolation(key, value)
        cleaned[key] = value
    return cleaned


class TaskGateway:
    def __init__(
        self,
        session_factory: SessionFactory,
        feed: Optional[ChangeFeed] = None,
        repository: TaskRepository | None = None,
    ):
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()
        self.repo = repository or SqlAlchemyTaskRepository()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except OperationalError as exc:
            db.rollback()
            TASK_WRITE_COUNT.labels(operation=operation, outcome="unavailable").inc()
            logger.error("database unavailable during %s: %s", operation, exc)
            raise Unavailable(str(exc.orig or exc)) from exc
        except StatementError as exc:
            # Enum columns reject unknown labels (LookupError) and constraints fail (IntegrityError)
            db.rollback()
            TASK_WRITE_COUNT.labels(operation=operation, outcome="constraint").inc()
            raise ConstraintViolation("row", None, f"database rejected {operation}: {exc.orig or exc}") from exc
        finally:
            db.close()

    def create(self, draft: TaskDraft) -> TaskRecord:
        fields = _check_changes(
            {
                "entry": draft.entry,
                "name": draft.name,
                "type": draft.type,
                "category": draft.category,
                "subcategory": draft.subcategory,
                "who": draft.who,
                "due_date": draft.due_date,
                "completed": draft.completed,
            }
        )
        now = utcnow()
        with self._session("create") as db:
            row = models.Task(created_at=now, updated_at=now, **fields)
            self.repo.add(db, row)
            db.commit()
            db.refresh(row)
            record = TaskRecord.from_model(row)
        TASK_WRITE_COUNT.labels(operation="create", outcome="ok").inc()
        logger.info("created task %s (%s / %s)", record.id, record.type.value, record.category.value)
        self.feed.publish(ChangeKind.INSERT, record)
        return record

    def get(self, task_id: str) -> TaskRecord:
        with self._session("get") as db:
            row = self.repo.get(db, task_id)
            if row is None:
                raise TaskNotFound(task_id)
            return TaskRecord.from_model(row)

    def update(self, task_id: str, changes: Mapping[str, Any]) -> TaskRecord:
        cleaned = _check_changes(changes)
        with self._session("update") as db:
            row = self.repo.get(db, task_id)
            if row is None:
                TASK_WRITE_COUNT.labels(operation="update", outcome="not_found").inc()
                raise TaskNotFound(task_id)
            for key, value in cleaned.items():
                setattr(row, key, value)
            # never move updated_at backwards, even if clocks disagree
            previous = ensure_utc(row.updated_at)
            now = utcnow()
            row.updated_at = now if previous is None or now >= previous else previous
            db.commit()
            db.refresh(row)
            record = TaskRecord.from_model(row)
        TASK_WRITE_COUNT.labels(operation="update", outcome="ok").inc()
        self.feed.publish(ChangeKind.UPDATE, record)
        return record

    def log_now(self, task_id: str) -> TaskRecord:
        """Mark a task done right now (``completed=True``, ``due_date=now``)."""
        return self.update(task_id, {"completed": True, "due_date": utcnow()})

    def remove(self, task_id: str) -> None:
        with self._session("remove") as db:
            row = self.repo.get(db, task_id)
            if row is None:
                TASK_WRITE_COUNT.labels(operation="remove", outcome="not_found").inc()
                raise TaskNotFound(task_id)
            record = TaskRecord.from_model(row)
            self.repo.delete(db, row)
            db.commit()
        TASK_WRITE_COUNT.labels(operation="remove", outcome="ok").inc()
        logger.info("removed task %s", task_id)
        self.feed.publish(ChangeKind.DELETE, record)

    def list(self, order_by: str = "created_at", descending: bool = True) -> List[TaskRecord]:
        with self._session("list") as db:
            rows = self.repo.list_ordered(db, order_by=order_by, descending=descending)
            return [TaskRecord.from_model(r) for r in rows]

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        return self.feed.subscribe(callback)
