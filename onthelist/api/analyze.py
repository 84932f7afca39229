from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..errors import ValidationAppError, UnprocessableError, InternalServerError
from ..services.classification_service import (
    ClassificationService, ClassificationHint,
    InvalidEnumValue, MalformedResponse, EmptyResponse, ServiceUnavailable,
)
from .deps import get_classifier

router = APIRouter(tags=["analyze"])


@router.post("/analyze-task")
async def analyze_task(request: Request, classifier: ClassificationService = Depends(get_classifier)):
    """Classify one free-text entry.

    Reads the body by hand so that a missing or malformed body is a 400, leaving
    422 for taxonomy violations in the model's answer.
    """
    content_type = request.headers.get("content-type") or ""
    if "application/json" not in content_type:
        raise ValidationAppError("INVALID_CONTENT_TYPE", "Content-Type must be application/json")
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationAppError("MALFORMED_BODY", "Request body must be valid JSON", details=str(e))
    if not isinstance(payload, dict):
        raise ValidationAppError("MALFORMED_BODY", "Request body must be a JSON object")

    entry = payload.get("entry")
    if not isinstance(entry, str) or not entry.strip():
        raise ValidationAppError("ENTRY_REQUIRED", "Entry text is required")
    due_date = payload.get("due_date")
    if due_date is not None and not isinstance(due_date, str):
        raise ValidationAppError("INVALID_DUE_DATE", "due_date must be an ISO 8601 string")

    try:
        result = await run_in_threadpool(classifier.classify, entry.strip(), ClassificationHint(due_date=due_date))
    except InvalidEnumValue as e:
        raise UnprocessableError(
            "INVALID_ENUM_VALUE",
            f"Invalid {e.field}. Must be one of: {', '.join(e.allowed)}",
            details=str(e),
        )
    except MalformedResponse as e:
        raise InternalServerError("Invalid JSON response from language model", code="MALFORMED_RESPONSE", details=str(e))
    except EmptyResponse as e:
        raise InternalServerError("Failed to analyze task", code="EMPTY_RESPONSE", details=str(e))
    except ServiceUnavailable as e:
        raise InternalServerError("Failed to analyze task", code="UPSTREAM_UNAVAILABLE", details=str(e))
    return result.to_dict()
