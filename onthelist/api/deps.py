"""Request-scoped access to the collaborators wired up in ``create_app``."""
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request

from ..config import Settings
from ..errors import ConflictError, NotFoundError, ServiceUnavailableError
from ..services.classification_service import ClassificationService
from ..services.task_gateway import TaskGateway, TaskNotFound, ConstraintViolation, Unavailable


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> TaskGateway:
    return request.app.state.gateway


def get_classifier(request: Request) -> ClassificationService:
    return request.app.state.classifier


@contextmanager
def gateway_errors() -> Iterator[None]:
    """Translate gateway failures into API errors."""
    try:
        yield
    except TaskNotFound:
        raise NotFoundError("TASK_NOT_FOUND", "Task not found")
    except ConstraintViolation as e:
        raise ConflictError("CONSTRAINT_VIOLATION", str(e))
    except Unavailable as e:
        raise ServiceUnavailableError("DATABASE_UNAVAILABLE", "Database is unavailable", details=str(e))
