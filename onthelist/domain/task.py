"""Plain task records passed between the gateway, the store and the API.

ORM rows never leave the session that loaded them; everything downstream of
the gateway works with these immutable snapshots.
"""
from __future__ import annotations
from dataclasses import dataclass, replace, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from .enums import TaskType, TaskCategory, TaskSubcategory

# Fields a caller may change after creation (id and timestamps are server-owned)
MUTABLE_FIELDS = frozenset(
    {"entry", "name", "type", "category", "subcategory", "who", "due_date", "completed"}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TaskDraft:
    """Fields of a task that does not exist yet."""
    entry: str
    name: str
    type: TaskType
    category: TaskCategory
    subcategory: Optional[TaskSubcategory] = None
    who: str = ""
    due_date: Optional[datetime] = None
    completed: bool = False


@dataclass(frozen=True)
class TaskRecord:
    id: str
    entry: str
    name: str
    type: TaskType
    category: TaskCategory
    subcategory: Optional[TaskSubcategory]
    who: str
    due_date: Optional[datetime]
    completed: bool
    created_at: datetime
    updated_at: datetime

    @property
    def completed_at(self) -> Optional[datetime]:
        # completion has no dedicated column; toggling stamps updated_at
        return self.updated_at if self.completed else None

    def with_changes(self, **changes) -> "TaskRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("type", "category", "subcategory"):
            if data[key] is not None:
                data[key] = data[key].value
        for key in ("due_date", "created_at", "updated_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_model(cls, row) -> "TaskRecord":
        return cls(
            id=row.id,
            entry=row.entry,
            name=row.name,
            type=TaskType(row.type),
            category=TaskCategory(row.category),
            subcategory=TaskSubcategory(row.subcategory) if row.subcategory else None,
            who=row.who or "",
            due_date=ensure_utc(row.due_date),
            completed=bool(row.completed),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )
