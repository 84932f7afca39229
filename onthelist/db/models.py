from sqlalchemy import Column, String, Text, DateTime, Boolean, Enum as SAEnum
from datetime import datetime, timezone
from .session import Base
from ..domain.enums import TaskType, TaskCategory, TaskSubcategory
import uuid


def gen_uuid():
    return str(uuid.uuid4())


def _labels(enum_cls):
    return [m.value for m in enum_cls]


# Database-level enumerations; the category type name reflects the final revision
TaskTypeColumn = SAEnum(
    TaskType, name="task_type", values_callable=_labels, validate_strings=True
)
TaskCategoryColumn = SAEnum(
    TaskCategory, name="task_category_new", values_callable=_labels, validate_strings=True
)
TaskSubcategoryColumn = SAEnum(
    TaskSubcategory, name="task_subcategory", values_callable=_labels, validate_strings=True
)


class Task(Base):
    __tablename__ = "tasks"
    id = Column(String, primary_key=True, default=gen_uuid)
    entry = Column(Text, nullable=False)
    name = Column(String, nullable=False)
    type = Column(TaskTypeColumn, nullable=False, index=True)
    category = Column(TaskCategoryColumn, nullable=False, index=True)
    subcategory = Column(TaskSubcategoryColumn, nullable=True, index=True)
    who = Column(String, nullable=False, default="")
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
