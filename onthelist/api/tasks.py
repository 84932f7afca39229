from datetime import datetime, tzinfo
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..domain.enums import TaskType, TaskCategory, TaskSubcategory
from ..domain.task import TaskDraft
from ..services.task_gateway import TaskGateway
from .deps import get_gateway, get_settings, gateway_errors

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskCreate(BaseModel):
    entry: str = Field(..., min_length=1)
    name: str = ""
    type: TaskType
    category: TaskCategory
    subcategory: Optional[TaskSubcategory] = None
    who: str = ""
    due_date: Optional[datetime] = None
    completed: bool = False


class TaskUpdate(BaseModel):
    entry: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = None
    type: Optional[TaskType] = None
    category: Optional[TaskCategory] = None
    subcategory: Optional[TaskSubcategory] = None
    who: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None


class TaskOut(BaseModel):
    id: str
    entry: str
    name: str
    type: TaskType
    category: TaskCategory
    subcategory: Optional[TaskSubcategory] = None
    who: str
    due_date: Optional[datetime] = None
    completed: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


def _localize(value: Optional[datetime], tz: tzinfo) -> Optional[datetime]:
    # naive wall-clock times from clients are in the app timezone
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


@router.post("", response_model=TaskOut, status_code=201)
def create_task(
    body: TaskCreate,
    gateway: TaskGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    draft = TaskDraft(
        entry=body.entry,
        name=body.name,
        type=body.type,
        category=body.category,
        subcategory=body.subcategory,
        who=body.who,
        due_date=_localize(body.due_date, settings.tz),
        completed=body.completed,
    )
    with gateway_errors():
        record = gateway.create(draft)
    return TaskOut.model_validate(record)


@router.get("", response_model=List[TaskOut])
def list_tasks(
    order: str = Query("desc", pattern="^(asc|desc)$"),
    gateway: TaskGateway = Depends(get_gateway),
):
    """All tasks by creation time, newest first unless ``order=asc``."""
    with gateway_errors():
        records = gateway.list(order_by="created_at", descending=order == "desc")
    return [TaskOut.model_validate(r) for r in records]


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, gateway: TaskGateway = Depends(get_gateway)):
    with gateway_errors():
        record = gateway.get(task_id)
    return TaskOut.model_validate(record)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    body: TaskUpdate,
    gateway: TaskGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    changes = body.model_dump(exclude_unset=True)
    if "due_date" in changes:
        changes["due_date"] = _localize(changes["due_date"], settings.tz)
    with gateway_errors():
        record = gateway.update(task_id, changes) if changes else gateway.get(task_id)
    return TaskOut.model_validate(record)


@router.post("/{task_id}/log-now", response_model=TaskOut)
def log_task_now(task_id: str, gateway: TaskGateway = Depends(get_gateway)):
    with gateway_errors():
        record = gateway.log_now(task_id)
    return TaskOut.model_validate(record)


@router.delete("/{task_id}", status_code=204)
def delete_task(task_id: str, gateway: TaskGateway = Depends(get_gateway)):
    with gateway_errors():
        gateway.remove(task_id)
    return Response(status_code=204)
