"""Chart-ready summaries derived from a snapshot of tasks.

Everything here is a pure function of its inputs: callers recompute the whole
dashboard whenever the working set changes.
"""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import datetime, tzinfo, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..domain.enums import TaskType, TaskCategory, TaskSubcategory
from ..domain.task import TaskRecord

UNCATEGORIZED = "Uncategorized"

DISTRIBUTION_FIELDS: Dict[str, Callable[[TaskRecord], Optional[str]]] = {
    "type": lambda t: t.type.value,
    "category": lambda t: t.category.value,
    "subcategory": lambda t: t.subcategory.value if t.subcategory else None,
    "who": lambda t: (t.who or "").strip() or None,
}

TAXONOMY_FIELDS = {"type": TaskType, "category": TaskCategory, "subcategory": TaskSubcategory}


@dataclass(frozen=True)
class DistributionItem:
    label: str
    count: int
    percentage: int


@dataclass(frozen=True)
class Dataset:
    label: str
    data: List[int]


@dataclass(frozen=True)
class TimeSeries:
    labels: List[str]
    datasets: List[Dataset]


@dataclass(frozen=True)
class CompletionRate:
    task_type: Optional[str]
    completed: int
    pending: int
    completed_percentage: int
    pending_percentage: int

    @property
    def total(self) -> int:
        return self.completed + self.pending


@dataclass(frozen=True)
class Dashboard:
    total: int
    completed: int
    pending: int
    overdue: int
    by_category: List[DistributionItem]
    by_subcategory: List[DistributionItem]
    by_who: List[DistributionItem]
    completions: TimeSeries
    created: TimeSeries
    completion_rate: CompletionRate
    filters: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def percentages(counts: Sequence[int]) -> List[int]:
    """Share of each count in the total, rounded half up; all zeros for an empty total."""
    total = sum(counts)
    if total == 0:
        return [0 for _ in counts]
    return [(c * 200 + total) // (2 * total) for c in counts]


def _narrow(
    tasks: Iterable[TaskRecord],
    category: Optional[TaskCategory] = None,
    subcategory: Optional[TaskSubcategory] = None,
) -> List[TaskRecord]:
    out = []
    for t in tasks:
        if category is not None and t.category != category:
            continue
        if subcategory is not None and t.subcategory != subcategory:
            continue
        out.append(t)
    return out


def distribution(
    tasks: Iterable[TaskRecord],
    field_name: str,
    category: Optional[TaskCategory] = None,
    subcategory: Optional[TaskSubcategory] = None,
    include_all: bool = False,
) -> List[DistributionItem]:
    """Group-by-count of one field, largest group first (ties keep first appearance).

    Tasks without a value for the field (no subcategory, empty who) are left out.
    With ``include_all`` every taxonomy label is listed, zero counts included.
    """
    try:
        get = DISTRIBUTION_FIELDS[field_name]
    except KeyError:
        raise ValueError(f"cannot aggregate by {field_name!r}") from None
    counts: Counter = Counter()
    if include_all and field_name in TAXONOMY_FIELDS:
        for member in TAXONOMY_FIELDS[field_name]:
            counts[member.value] = 0
    for t in _narrow(tasks, category, subcategory):
        label = get(t)
        if label:
            counts[label] += 1
    ordered = sorted(counts.items(), key=lambda kv: -kv[1])
    shares = percentages([c for _, c in ordered])
    return [DistributionItem(label=label, count=count, percentage=pct) for (label, count), pct in zip(ordered, shares)]


def _day(moment: datetime, tz: tzinfo) -> str:
    return moment.astimezone(tz).date().isoformat()


def completion_series(
    tasks: Iterable[TaskRecord],
    tz: tzinfo = timezone.utc,
    category: Optional[TaskCategory] = None,
    subcategory: Optional[TaskSubcategory] = None,
) -> TimeSeries:
    """Completed tasks per local calendar day, one stacked dataset per subcategory."""
    per_day: Dict[str, Counter] = {}
    stack_totals: Counter = Counter()
    for t in _narrow(tasks, category, subcategory):
        done_at = t.completed_at
        if done_at is None:
            continue
        stack = t.subcategory.value if t.subcategory else UNCATEGORIZED
        per_day.setdefault(_day(done_at, tz), Counter())[stack] += 1
        stack_totals[stack] += 1
    days = sorted(per_day)
    stacks = [label for label, _ in sorted(stack_totals.items(), key=lambda kv: -kv[1])]
    datasets = [Dataset(label=s, data=[per_day[d][s] for d in days]) for s in stacks]
    return TimeSeries(labels=days, datasets=datasets)


def created_series(tasks: Iterable[TaskRecord], tz: tzinfo = timezone.utc) -> TimeSeries:
    per_day: Counter = Counter(_day(t.created_at, tz) for t in tasks)
    days = sorted(per_day)
    return TimeSeries(labels=days, datasets=[Dataset(label="Tasks Created", data=[per_day[d] for d in days])])


def completion_rate(tasks: Iterable[TaskRecord], task_type: Optional[TaskType] = TaskType.FOCUS) -> CompletionRate:
    subset = [t for t in tasks if task_type is None or t.type == task_type]
    completed = sum(1 for t in subset if t.completed)
    pending = len(subset) - completed
    done_pct, pending_pct = percentages([completed, pending])
    return CompletionRate(
        task_type=task_type.value if task_type is not None else None,
        completed=completed,
        pending=pending,
        completed_percentage=done_pct,
        pending_percentage=pending_pct,
    )


def build_dashboard(
    tasks: Iterable[TaskRecord],
    tz: tzinfo = timezone.utc,
    category: Optional[TaskCategory] = None,
    subcategory: Optional[TaskSubcategory] = None,
    completion_type: Optional[TaskType] = TaskType.FOCUS,
    now: Optional[datetime] = None,
) -> Dashboard:
    """Full dashboard snapshot over every task; only the charts honour the sub-filters."""
    tasks = list(tasks)
    now = now or datetime.now(timezone.utc)
    completed = sum(1 for t in tasks if t.completed)
    overdue = sum(1 for t in tasks if not t.completed and t.due_date is not None and t.due_date < now)
    return Dashboard(
        total=len(tasks),
        completed=completed,
        pending=len(tasks) - completed,
        overdue=overdue,
        by_category=distribution(tasks, "category", include_all=True),
        by_subcategory=distribution(tasks, "subcategory", category=category),
        by_who=distribution(tasks, "who", category=category, subcategory=subcategory),
        completions=completion_series(tasks, tz, category=category, subcategory=subcategory),
        created=created_series(tasks, tz),
        completion_rate=completion_rate(tasks, completion_type),
        filters={
            "category": category.value if category else None,
            "subcategory": subcategory.value if subcategory else None,
            "completionType": completion_type.value if completion_type else None,
        },
    )
