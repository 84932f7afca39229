from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..config import Settings
from ..domain.enums import TaskType, TaskCategory, TaskSubcategory, TaxonomyKind, coerce, values
from ..errors import UnprocessableError
from ..services.aggregation_service import build_dashboard
from ..services.task_gateway import TaskGateway
from .deps import get_gateway, get_settings, gateway_errors

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

ALL_TYPES = "all"


def _completion_type(raw: Optional[str]) -> Optional[TaskType]:
    if raw is None:
        return TaskType.FOCUS
    if raw == "" or raw.lower() == ALL_TYPES:
        return None
    member = coerce(TaxonomyKind.TYPE, raw)
    if member is None:
        raise UnprocessableError(
            "INVALID_ENUM_VALUE",
            f"Invalid completionType. Must be one of: {', '.join(values(TaxonomyKind.TYPE))}, {ALL_TYPES}",
        )
    return member


@router.get("")
def get_dashboard(
    category: Optional[TaskCategory] = None,
    subcategory: Optional[TaskSubcategory] = None,
    completion_type: Optional[str] = Query(None, alias="completionType"),
    gateway: TaskGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    task_type = _completion_type(completion_type)
    with gateway_errors():
        tasks = gateway.list()
    dashboard = build_dashboard(
        tasks,
        tz=settings.tz,
        category=category,
        subcategory=subcategory,
        completion_type=task_type,
    )
    return dashboard.to_dict()
