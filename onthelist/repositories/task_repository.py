from __future__ import annotations
from typing import Protocol, List, Optional
from sqlalchemy.orm import Session

from ..db import models

ORDERABLE_COLUMNS = {
    "created_at": models.Task.created_at,
    "updated_at": models.Task.updated_at,
    "due_date": models.Task.due_date,
    "name": models.Task.name,
}


class TaskRepository(Protocol):
    def get(self, db: Session, task_id: str) -> Optional[models.Task]: ...
    def add(self, db: Session, task: models.Task) -> models.Task: ...
    def delete(self, db: Session, task: models.Task) -> None: ...
    def list_ordered(self, db: Session, order_by: str = "created_at", descending: bool = True) -> List[models.Task]: ...


class SqlAlchemyTaskRepository:
    """SQLAlchemy-backed access to the ``tasks`` table; commits are left to the caller."""

    def get(self, db: Session, task_id: str) -> Optional[models.Task]:
        return db.query(models.Task).filter(models.Task.id == task_id).first()

    def add(self, db: Session, task: models.Task) -> models.Task:
        db.add(task)
        return task

    def delete(self, db: Session, task: models.Task) -> None:
        db.delete(task)

    def list_ordered(self, db: Session, order_by: str = "created_at", descending: bool = True) -> List[models.Task]:
        column = ORDERABLE_COLUMNS.get(order_by)
        if column is None:
            raise ValueError(f"cannot order tasks by {order_by!r}")
        q = db.query(models.Task)
        q = q.order_by(column.desc() if descending else column.asc(), models.Task.id)
        return q.all()
