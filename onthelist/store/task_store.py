"""Observable in-memory working set of tasks.

The store is the view model a presentation layer binds to: it holds every
task keyed by id, the active filter and sort, reconciles change-feed events,
and runs user actions against the gateway. Listeners registered with
``subscribe`` are called after every state change; ``view()`` derives the
visible list on demand and never mutates the working set.

User actions never raise. Each returns an ``ActionResult`` carrying a
user-facing message, and the working set is left as it was on failure.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from ..domain.enums import TaxonomyKind, TaskType, TaskCategory, TaskSubcategory, coerce
from ..domain.task import TaskDraft, TaskRecord
from ..services.change_feed import ChangeKind, Subscription
from ..services.classification_service import (
    ClassificationHint, ClassificationService, ClassificationValidationError, ServiceUnavailable,
)
from ..services.task_gateway import TaskGateway, TaskNotFound, ConstraintViolation, Unavailable

logger = logging.getLogger(__name__)

Listener = Callable[["TaskStore"], None]


class SortKey(str, Enum):
    NAME = "name"
    CREATED_AT = "created_at"
    DUE_DATE = "due_date"
    COMPLETED = "completed"
    TYPE = "type"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    WHO = "who"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


_TIMESTAMP_KEYS = {
    SortKey.CREATED_AT: lambda t: t.created_at,
    SortKey.DUE_DATE: lambda t: t.due_date,
    SortKey.COMPLETED: lambda t: t.completed_at,
}


def _label(value) -> str:
    if value is None:
        return ""
    return value.value if isinstance(value, Enum) else str(value)


_LABEL_KEYS = {
    SortKey.NAME: lambda t: t.name or "",
    SortKey.TYPE: lambda t: _label(t.type),
    SortKey.CATEGORY: lambda t: _label(t.category),
    SortKey.SUBCATEGORY: lambda t: _label(t.subcategory),
    SortKey.WHO: lambda t: t.who or "",
}


def sort_tasks(tasks: List[TaskRecord], key: SortKey, direction: SortDirection) -> List[TaskRecord]:
    """Stable sort; timestamp keys put missing values last in either direction."""
    key = SortKey(key)
    descending = SortDirection(direction) is SortDirection.DESCENDING
    if key in _TIMESTAMP_KEYS:
        get = _TIMESTAMP_KEYS[key]
        present = [t for t in tasks if get(t) is not None]
        missing = [t for t in tasks if get(t) is None]
        return sorted(present, key=get, reverse=descending) + missing
    return sorted(tasks, key=_LABEL_KEYS[key], reverse=descending)


@dataclass(frozen=True)
class TaskFilter:
    """Conjunction of search text, exact field matches and completed visibility.

    ``None`` for a field means "All". Taxonomy fields only accept taxonomy labels.
    """
    search: str = ""
    type: Optional[TaskType] = None
    category: Optional[TaskCategory] = None
    subcategory: Optional[TaskSubcategory] = None
    who: Optional[str] = None
    show_completed: bool = False

    def __post_init__(self):
        for name, kind in (
            ("type", TaxonomyKind.TYPE),
            ("category", TaxonomyKind.CATEGORY),
            ("subcategory", TaxonomyKind.SUBCATEGORY),
        ):
            raw = getattr(self, name)
            if raw in (None, ""):
                object.__setattr__(self, name, None)
                continue
            member = coerce(kind, raw)
            if member is None:
                raise ValueError(f"{raw!r} is not a valid {name}")
            object.__setattr__(self, name, member)
        if self.who == "":
            object.__setattr__(self, "who", None)
        object.__setattr__(self, "search", (self.search or "").strip())

    def matches(self, task: TaskRecord) -> bool:
        if not self.show_completed and task.completed:
            return False
        if self.search:
            needle = self.search.lower()
            haystacks = (task.name or "", task.entry or "", task.who or "")
            if not any(needle in h.lower() for h in haystacks):
                return False
        if self.type is not None and task.type != self.type:
            return False
        if self.category is not None and task.category != self.category:
            return False
        if self.subcategory is not None and task.subcategory != self.subcategory:
            return False
        if self.who is not None and task.who != self.who:
            return False
        return True

    @property
    def active_count(self) -> int:
        return sum(1 for v in (self.type, self.category, self.subcategory) if v is not None)


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str = ""
    task: Optional[TaskRecord] = None
    draft: Optional[Dict[str, Any]] = None
    retryable: bool = False


MSG_NOT_FOUND = "This task no longer exists."
MSG_UNAVAILABLE = "Could not reach the database. Please try again."
MSG_CLASSIFY_UNAVAILABLE = "Could not analyze the entry right now. Try again or fill in the details manually."
MSG_CLASSIFY_INVALID = "Could not classify this entry. Please fill in the details manually."

# Deleted ids remembered to drop late feed events; oldest forgotten first
TOMBSTONE_LIMIT = 1024


def _newest_first(records: Iterable[TaskRecord]) -> Dict[str, TaskRecord]:
    """Working-set order of a fresh load: created_at descending, then id."""
    ordered = sorted(records, key=lambda t: t.id)
    ordered.sort(key=lambda t: t.created_at, reverse=True)
    return {t.id: t for t in ordered}


class TaskStore:
    def __init__(
        self,
        gateway: TaskGateway,
        classifier: Optional[ClassificationService] = None,
        tombstone_limit: int = TOMBSTONE_LIMIT,
    ):
        self.gateway = gateway
        self.classifier = classifier
        self._tasks: Dict[str, TaskRecord] = {}
        self._deleted: Dict[str, None] = {}
        self._tombstone_limit = tombstone_limit
        self._filter = TaskFilter()
        self._sort: Optional[Tuple[SortKey, SortDirection]] = None
        self._listeners: List[Listener] = []

    # --- observation ---
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("task store listener failed")

    def connect(self, source) -> Subscription:
        """Feed change events from ``source`` (a gateway or change feed) into this store."""
        return source.subscribe(self.apply_remote_event)

    # --- state ---
    @property
    def tasks(self) -> List[TaskRecord]:
        return list(self._tasks.values())

    @property
    def filter(self) -> TaskFilter:
        return self._filter

    @property
    def sort(self) -> Optional[Tuple[SortKey, SortDirection]]:
        return self._sort

    def get(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.get(task_id)

    def load(self) -> ActionResult:
        try:
            records = self.gateway.list(order_by="created_at", descending=True)
        except Unavailable:
            return ActionResult(ok=False, message=MSG_UNAVAILABLE, retryable=True)
        self._tasks = _newest_first(records)
        self._deleted.clear()
        self._notify()
        return ActionResult(ok=True)

    def apply_remote_event(self, kind: ChangeKind, record: TaskRecord) -> None:
        kind = ChangeKind(kind)
        if self._reconcile(kind, record):
            self._notify()

    def _reconcile(self, kind: ChangeKind, record: TaskRecord) -> bool:
        """Apply one event; returns whether the working set changed."""
        current = self._tasks.get(record.id)
        if kind is ChangeKind.DELETE:
            self._remember_deleted(record.id)
            if current is None:
                return False
            del self._tasks[record.id]
            return True
        if record.id in self._deleted:
            # late insert/update for a row we already saw deleted
            return False
        if current is None:
            if kind is ChangeKind.UPDATE:
                return False
            self._tasks = _newest_first([record, *self._tasks.values()])
            return True
        if record.updated_at < current.updated_at or record == current:
            return False
        self._tasks[record.id] = record
        return True

    def _remember_deleted(self, task_id: str) -> None:
        self._deleted.pop(task_id, None)
        self._deleted[task_id] = None
        while len(self._deleted) > self._tombstone_limit:
            del self._deleted[next(iter(self._deleted))]

    def set_filter(self, task_filter: TaskFilter) -> None:
        self._filter = task_filter
        self._notify()

    def set_sort(self, key: SortKey, direction: SortDirection = SortDirection.ASCENDING) -> None:
        self._sort = (SortKey(key), SortDirection(direction))
        self._notify()

    def toggle_sort(self, key: SortKey) -> None:
        """Column-header behaviour: ascending first, then flip on repeat clicks."""
        key = SortKey(key)
        direction = SortDirection.ASCENDING
        if self._sort and self._sort[0] is key and self._sort[1] is SortDirection.ASCENDING:
            direction = SortDirection.DESCENDING
        self.set_sort(key, direction)

    def clear_sort(self) -> None:
        self._sort = None
        self._notify()

    def view(self) -> List[TaskRecord]:
        visible = [t for t in self._tasks.values() if self._filter.matches(t)]
        if self._sort is None:
            return visible
        return sort_tasks(visible, *self._sort)

    def filter_options(self) -> Dict[str, List[str]]:
        """Distinct values present in the working set, per filterable field."""
        present = {"type": set(), "category": set(), "subcategory": set(), "who": set()}
        for t in self._tasks.values():
            present["type"].add(t.type.value)
            present["category"].add(t.category.value)
            if t.subcategory is not None:
                present["subcategory"].add(t.subcategory.value)
            if t.who:
                present["who"].add(t.who)
        return {
            "type": [m.value for m in TaskType if m.value in present["type"]],
            "category": [m.value for m in TaskCategory if m.value in present["category"]],
            "subcategory": [m.value for m in TaskSubcategory if m.value in present["subcategory"]],
            "who": sorted(present["who"]),
        }

    # --- user actions ---
    def submit(self, entry: str, hint: Optional[ClassificationHint] = None) -> ActionResult:
        """Classify an entry into a draft; falls back to a manual draft on any error."""
        entry = (entry or "").strip()
        if not entry:
            return ActionResult(ok=False, message="Entry text is required.")
        if self.classifier is None:
            return ActionResult(ok=False, message=MSG_CLASSIFY_INVALID, draft=self._fallback(entry, hint))
        try:
            result = self.classifier.classify(entry, hint)
        except ServiceUnavailable:
            return ActionResult(
                ok=False, message=MSG_CLASSIFY_UNAVAILABLE, draft=self._fallback(entry, hint), retryable=True
            )
        except ClassificationValidationError:
            return ActionResult(ok=False, message=MSG_CLASSIFY_INVALID, draft=self._fallback(entry, hint))
        draft = {
            "entry": entry,
            "name": result.name,
            "type": result.type,
            "category": result.category,
            "subcategory": result.subcategory,
            "who": result.who,
            "due_date": result.due_date,
            "completed": False,
        }
        return ActionResult(ok=True, draft=draft)

    def _fallback(self, entry: str, hint: Optional[ClassificationHint]) -> Dict[str, Any]:
        if self.classifier is not None:
            return self.classifier.manual_fallback(entry, hint)
        return {
            "entry": entry, "name": "", "type": TaskType.FOCUS, "category": TaskCategory.TASK,
            "subcategory": None, "who": "", "due_date": None, "completed": False,
        }

    def accept(self, draft: Mapping[str, Any]) -> ActionResult:
        """Persist a (possibly user-edited) draft."""
        try:
            task_draft = _draft_from_mapping(draft)
            record = self.gateway.create(task_draft)
        except (ConstraintViolation, ValueError, KeyError) as exc:
            return ActionResult(ok=False, message=f"Could not save task: {exc}")
        except Unavailable:
            return ActionResult(ok=False, message=MSG_UNAVAILABLE, retryable=True)
        self.apply_remote_event(ChangeKind.INSERT, record)
        return ActionResult(ok=True, task=record)

    def edit(self, task_id: str, changes: Mapping[str, Any]) -> ActionResult:
        return self._write(lambda: self.gateway.update(task_id, dict(changes)))

    def toggle_completed(self, task_id: str) -> ActionResult:
        current = self._tasks.get(task_id)
        if current is None:
            return ActionResult(ok=False, message=MSG_NOT_FOUND)
        return self._write(lambda: self.gateway.update(task_id, {"completed": not current.completed}))

    def log_now(self, task_id: str) -> ActionResult:
        return self._write(lambda: self.gateway.log_now(task_id))

    def delete(self, task_id: str) -> ActionResult:
        current = self._tasks.get(task_id)
        try:
            self.gateway.remove(task_id)
        except TaskNotFound:
            return ActionResult(ok=False, message=MSG_NOT_FOUND)
        except Unavailable:
            return ActionResult(ok=False, message=MSG_UNAVAILABLE, retryable=True)
        if current is not None:
            self.apply_remote_event(ChangeKind.DELETE, current)
        else:
            self._remember_deleted(task_id)
        return ActionResult(ok=True, task=current)

    def _write(self, op: Callable[[], TaskRecord]) -> ActionResult:
        try:
            record = op()
        except TaskNotFound:
            return ActionResult(ok=False, message=MSG_NOT_FOUND)
        except ConstraintViolation as exc:
            return ActionResult(ok=False, message=f"Invalid value for {exc.field}.")
        except Unavailable:
            return ActionResult(ok=False, message=MSG_UNAVAILABLE, retryable=True)
        self.apply_remote_event(ChangeKind.UPDATE, record)
        return ActionResult(ok=True, task=record)


def _draft_from_mapping(draft: Mapping[str, Any]) -> TaskDraft:
    entry = draft.get("entry")
    if entry is not None and not isinstance(entry, str):
        raise ConstraintViolation("entry", entry)
    if not (entry or "").strip():
        raise ValueError("entry is required")
    fields = {}
    for name, kind in (
        ("type", TaxonomyKind.TYPE),
        ("category", TaxonomyKind.CATEGORY),
        ("subcategory", TaxonomyKind.SUBCATEGORY),
    ):
        raw = draft.get(name)
        if name == "subcategory" and raw in (None, ""):
            fields[name] = None
            continue
        member = coerce(kind, raw)
        if member is None:
            raise ConstraintViolation(name, raw)
        fields[name] = member
    due_date = draft.get("due_date")
    if due_date is not None and not isinstance(due_date, datetime):
        raise ConstraintViolation("due_date", due_date)
    return TaskDraft(
        entry=entry,
        name=draft.get("name") or "",
        who=draft.get("who") or "",
        due_date=due_date,
        completed=bool(draft.get("completed", False)),
        **fields,
    )
