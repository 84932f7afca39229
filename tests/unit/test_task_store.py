from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from onthelist.config import Settings
from onthelist.domain.enums import TaskType, TaskCategory, TaskSubcategory
from onthelist.domain.task import TaskDraft
from onthelist.services.change_feed import ChangeKind
from onthelist.services.classification_service import ClassificationService, ServiceUnavailable
from onthelist.services.task_gateway import Unavailable
from onthelist.store.task_store import (
    TaskStore, TaskFilter, SortKey, SortDirection, sort_tasks,
    MSG_NOT_FOUND, MSG_UNAVAILABLE, MSG_CLASSIFY_UNAVAILABLE, MSG_CLASSIFY_INVALID,
)

T0 = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(gateway, provider):
    classifier = ClassificationService(provider, Settings(), clock=lambda: T0)
    return TaskStore(gateway, classifier)


def _draft(**overrides):
    draft = {
        "entry": "Call John about the party",
        "name": "Call John",
        "type": "Follow up",
        "category": "My asks",
        "subcategory": None,
        "who": "John",
        "due_date": None,
        "completed": False,
    }
    draft.update(overrides)
    return draft


# --- reconciliation ---

def test_repeated_remote_delete_is_idempotent(make_task):
    store = TaskStore(Mock())
    a, b = make_task(), make_task()
    store.apply_remote_event(ChangeKind.INSERT, a)
    store.apply_remote_event(ChangeKind.INSERT, b)

    store.apply_remote_event(ChangeKind.DELETE, a)
    after_first = store.tasks
    store.apply_remote_event(ChangeKind.DELETE, a)

    assert store.tasks == after_first == [b]


def test_insert_after_delete_is_ignored(make_task):
    store = TaskStore(Mock())
    task = make_task()
    store.apply_remote_event(ChangeKind.DELETE, task)
    store.apply_remote_event(ChangeKind.INSERT, task)
    assert store.tasks == []


def test_update_for_unknown_id_is_noop(make_task):
    store = TaskStore(Mock())
    store.apply_remote_event(ChangeKind.UPDATE, make_task())
    assert store.tasks == []


def test_stale_update_is_ignored(make_task):
    store = TaskStore(Mock())
    current = make_task(name="new", updated_at=T0 + timedelta(minutes=5))
    store.apply_remote_event(ChangeKind.INSERT, current)
    store.apply_remote_event(ChangeKind.UPDATE, current.with_changes(name="old", updated_at=T0))
    assert store.get(current.id).name == "new"


def test_duplicate_insert_upserts(make_task):
    store = TaskStore(Mock())
    task = make_task()
    store.apply_remote_event(ChangeKind.INSERT, task)
    store.apply_remote_event(ChangeKind.INSERT, task)
    assert store.tasks == [task]


def test_listeners_only_hear_real_changes(make_task):
    store = TaskStore(Mock())
    calls = []
    unsubscribe = store.subscribe(lambda s: calls.append(len(s.tasks)))
    task = make_task()
    store.apply_remote_event(ChangeKind.INSERT, task)
    store.apply_remote_event(ChangeKind.INSERT, task)
    unsubscribe()
    store.apply_remote_event(ChangeKind.DELETE, task)
    assert calls == [1]


def test_connect_follows_gateway_writes(gateway):
    store = TaskStore(gateway)
    sub = store.connect(gateway)
    created = gateway.create(TaskDraft(entry="Buy milk", name="Milk", type=TaskType.FOCUS, category=TaskCategory.TASK))
    assert store.get(created.id) == created
    sub.cancel()
    gateway.remove(created.id)
    assert store.get(created.id) == created


# --- view ---

def test_view_does_not_mutate_working_set(make_task):
    store = TaskStore(Mock())
    tasks = [make_task(name=n, completed=(n == "b")) for n in ("c", "b", "a")]
    for t in tasks:
        store.apply_remote_event(ChangeKind.INSERT, t)
    store.set_sort(SortKey.NAME)
    before = store.tasks

    visible = store.view()
    store.view()

    assert [t.name for t in visible] == ["a", "c"]  # completed hidden by default
    assert store.tasks == before


def test_filter_combines_search_and_fields(make_task):
    store = TaskStore(Mock())
    john = make_task(name="Call John", who="John", category=TaskCategory.MY_ASKS)
    sarah = make_task(name="Coffee", entry="Meet Sarah for coffee", who="Sarah", category=TaskCategory.MY_ASKS)
    other = make_task(name="Fence", category=TaskCategory.TASK, completed=True)
    for t in (john, sarah, other):
        store.apply_remote_event(ChangeKind.INSERT, t)

    store.set_filter(TaskFilter(search="SARAH"))
    assert store.view() == [sarah]
    store.set_filter(TaskFilter(category="My asks", who="John"))
    assert store.view() == [john]
    store.set_filter(TaskFilter(category="Task", show_completed=True))
    assert store.view() == [other]
    assert TaskFilter(category="Task", type="Focus").active_count == 2


def test_filter_rejects_values_outside_taxonomy():
    with pytest.raises(ValueError):
        TaskFilter(category="Chores")


def test_due_date_sort_puts_missing_last_both_ways(make_task):
    early = make_task(name="early", due_date=T0)
    late = make_task(name="late", due_date=T0 + timedelta(days=1))
    none = make_task(name="none", due_date=None)
    tasks = [none, late, early]
    assert [t.name for t in sort_tasks(tasks, SortKey.DUE_DATE, SortDirection.ASCENDING)] == ["early", "late", "none"]
    assert [t.name for t in sort_tasks(tasks, SortKey.DUE_DATE, SortDirection.DESCENDING)] == ["late", "early", "none"]


def test_completed_sort_uses_completion_stamp(make_task):
    first = make_task(name="first", completed=True, updated_at=T0)
    second = make_task(name="second", completed=True, updated_at=T0 + timedelta(hours=1))
    open_task = make_task(name="open")
    ordered = sort_tasks([open_task, second, first], SortKey.COMPLETED, SortDirection.ASCENDING)
    assert [t.name for t in ordered] == ["first", "second", "open"]


def test_label_sort_treats_missing_subcategory_as_empty(make_task):
    books = make_task(name="books", subcategory=TaskSubcategory.BOOKS)
    bare = make_task(name="bare")
    ordered = sort_tasks([books, bare], SortKey.SUBCATEGORY, SortDirection.ASCENDING)
    assert [t.name for t in ordered] == ["bare", "books"]


def test_toggle_sort_cycles(make_task):
    store = TaskStore(Mock())
    store.toggle_sort(SortKey.NAME)
    assert store.sort == (SortKey.NAME, SortDirection.ASCENDING)
    store.toggle_sort(SortKey.NAME)
    assert store.sort == (SortKey.NAME, SortDirection.DESCENDING)
    store.toggle_sort(SortKey.WHO)
    assert store.sort == (SortKey.WHO, SortDirection.ASCENDING)
    store.clear_sort()
    assert store.sort is None


def test_filter_options(make_task):
    store = TaskStore(Mock())
    for t in (
        make_task(type=TaskType.FOLLOW_UP, who="John", subcategory=TaskSubcategory.CAR),
        make_task(type=TaskType.FOCUS, who=""),
    ):
        store.apply_remote_event(ChangeKind.INSERT, t)
    options = store.filter_options()
    assert options["type"] == ["Focus", "Follow up"]
    assert options["subcategory"] == ["Car"]
    assert options["who"] == ["John"]


# --- actions ---

def test_load_reports_unavailable():
    gateway = Mock()
    gateway.list.side_effect = Unavailable("down")
    result = TaskStore(gateway).load()
    assert not result.ok
    assert result.retryable
    assert result.message == MSG_UNAVAILABLE


def test_submit_blank_entry(store):
    result = store.submit("   ")
    assert not result.ok
    assert result.draft is None


def test_submit_then_accept(store, provider):
    provider.respond_with({"name": "Call John", "type": "Follow up", "category": "My asks",
                           "subcategory": None, "who": "John", "due_date": "2026-10-23T15:00:00"})
    submitted = store.submit("Call John by Friday 3pm")
    assert submitted.ok
    assert submitted.draft["category"] is TaskCategory.MY_ASKS

    accepted = store.accept(submitted.draft)

    assert accepted.ok
    assert store.get(accepted.task.id) == accepted.task
    assert accepted.task.due_date == datetime(2026, 10, 23, 15, 0, tzinfo=timezone.utc)


def test_submit_falls_back_when_model_unreachable(store, provider):
    provider.fail_with(ServiceUnavailable("timeout"))
    result = store.submit("Fix the fence")
    assert not result.ok
    assert result.retryable
    assert result.message == MSG_CLASSIFY_UNAVAILABLE
    assert result.draft["type"] is TaskType.FOCUS
    assert result.draft["category"] is TaskCategory.TASK


def test_submit_falls_back_on_invalid_answer(store, provider):
    provider.respond_with({"type": "Focus", "category": "Chores"})
    result = store.submit("Fix the fence")
    assert not result.ok
    assert not result.retryable
    assert result.message == MSG_CLASSIFY_INVALID
    assert result.draft["entry"] == "Fix the fence"


def test_accept_rejects_bad_draft(store):
    result = store.accept(_draft(type="Urgent"))
    assert not result.ok
    assert store.tasks == []


def test_toggle_completed_and_log_now(store):
    task = store.accept(_draft()).task

    toggled = store.toggle_completed(task.id)
    assert toggled.ok and toggled.task.completed
    assert toggled.task.updated_at >= task.updated_at
    assert store.toggle_completed(task.id).task.completed is False

    logged = store.log_now(task.id)
    assert logged.task.completed
    assert logged.task.due_date is not None
    assert store.get(task.id) == logged.task


def test_edit_invalid_value_leaves_state(store):
    task = store.accept(_draft()).task
    result = store.edit(task.id, {"category": "Chores"})
    assert not result.ok
    assert "category" in result.message
    assert store.get(task.id) == task


def test_delete_twice_reports_not_found(store):
    task = store.accept(_draft()).task
    assert store.delete(task.id).ok
    again = store.delete(task.id)
    assert not again.ok
    assert again.message == MSG_NOT_FOUND
    assert store.tasks == []


def test_live_insert_keeps_reload_order(make_task):
    older = make_task(id="1", created_at=T0)
    middle = make_task(id="2", created_at=T0 + timedelta(minutes=1))
    newest = make_task(id="3", created_at=T0 + timedelta(minutes=2))
    gateway = Mock()
    gateway.list.return_value = [middle, older]
    store = TaskStore(gateway)
    store.load()

    store.apply_remote_event(ChangeKind.INSERT, newest)
    live = [t.id for t in store.view()]

    gateway.list.return_value = [newest, middle, older]
    store.load()
    assert live == [t.id for t in store.view()] == ["3", "2", "1"]


def test_deleted_ids_are_capped(make_task):
    store = TaskStore(Mock(), tombstone_limit=2)
    first, second, third = make_task(), make_task(), make_task()
    for t in (first, second, third):
        store.apply_remote_event(ChangeKind.DELETE, t)

    # the oldest tombstone was forgotten, so a late insert for it is accepted again
    store.apply_remote_event(ChangeKind.INSERT, first)
    store.apply_remote_event(ChangeKind.INSERT, third)
    assert store.tasks == [first]


def test_accept_rejects_non_text_entry(store):
    result = store.accept(_draft(entry=42))
    assert not result.ok
    assert "entry" in result.message
    assert store.tasks == []
