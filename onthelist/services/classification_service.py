"""Entry classification through a language model.

``ClassificationService.classify`` turns free text into a taxonomy-checked
``ClassificationResult`` or raises one of the ``ClassificationError`` types
below. It never retries: callers choose between asking the user to retry
(``ServiceUnavailable``) and falling back to manual entry
(``ClassificationValidationError``, see ``manual_fallback``).
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Any, Dict, Optional, Callable
import json
import logging
import re

from ..config import Settings
from ..domain.enums import (
    TaskType, TaskCategory, TaskSubcategory,
    is_valid_type, is_valid_category, is_valid_subcategory,
)
from ..metrics import CLASSIFY_COUNT, CLASSIFY_DURATION
from ..ports.completion_provider import CompletionProvider
from .prompts import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Task"

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ClassificationError(Exception):
    kind = "ClassificationError"


class ServiceUnavailable(ClassificationError):
    """Model unreachable, timed out, or not configured."""
    kind = "ServiceUnavailable"


class EmptyResponse(ServiceUnavailable):
    kind = "EmptyResponse"


class ClassificationValidationError(ClassificationError):
    """The model answered, but not with a usable record."""
    kind = "ValidationError"


class MalformedResponse(ClassificationValidationError):
    kind = "MalformedResponse"


class InvalidEnumValue(ClassificationValidationError):
    kind = "InvalidEnumValue"

    def __init__(self, field: str, value: Any, allowed=()):
        self.field = field
        self.value = value
        self.allowed = tuple(allowed)
        if value is None:
            message = f"missing {field}"
        else:
            message = f"invalid {field} {value!r}"
        super().__init__(message)


@dataclass(frozen=True)
class ClassificationHint:
    due_date: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    name: str
    type: TaskType
    category: TaskCategory
    subcategory: Optional[TaskSubcategory]
    who: str
    due_date: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "category": self.category.value,
            "subcategory": self.subcategory.value if self.subcategory else None,
            "who": self.who,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        }


def parse_due_date(raw: Any, tz: tzinfo, default_time: time) -> Optional[datetime]:
    """Parse an ISO-8601 date or timestamp; None for anything unparsable.

    Date-only values take ``default_time``; naive timestamps are read in ``tz``.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if _DATE_ONLY.match(text):
        try:
            return datetime.combine(date.fromisoformat(text), default_time, tzinfo=tz)
        except ValueError:
            return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


class ClassificationService:
    def __init__(
        self,
        provider: CompletionProvider,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provider = provider
        self.settings = settings
        self.tz = settings.tz
        self.clock = clock or (lambda: datetime.now(self.tz))

    def classify(self, entry: str, hint: Optional[ClassificationHint] = None) -> ClassificationResult:
        with CLASSIFY_DURATION.time():
            try:
                result = self._classify(entry, hint)
            except ClassificationError as exc:
                CLASSIFY_COUNT.labels(outcome=exc.kind).inc()
                logger.warning("classification failed (%s): %s", exc.kind, exc)
                raise
        CLASSIFY_COUNT.labels(outcome="ok").inc()
        return result

    def _classify(self, entry: str, hint: Optional[ClassificationHint]) -> ClassificationResult:
        system_prompt = build_system_prompt(self.clock(), self.settings.default_due_time)
        user_prompt = build_user_prompt(entry, hint.due_date if hint else None)
        text = self.provider.complete_json(system_prompt, user_prompt)
        if text is None or not text.strip():
            raise EmptyResponse("empty response from language model")
        try:
            data = json.loads(text)
        except ValueError as exc:
            logger.debug("unparsable model output: %r", text)
            raise MalformedResponse(f"invalid JSON from language model: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedResponse("language model did not return a JSON object")
        return self.normalize(data, hint)

    def normalize(self, data: Dict[str, Any], hint: Optional[ClassificationHint] = None) -> ClassificationResult:
        """Validate a decoded model answer against the taxonomy and fill defaults."""
        raw_type = data.get("type")
        if not is_valid_type(raw_type):
            raise InvalidEnumValue("type", raw_type, [m.value for m in TaskType])
        raw_category = data.get("category")
        if not is_valid_category(raw_category):
            raise InvalidEnumValue("category", raw_category, [m.value for m in TaskCategory])
        raw_subcategory = data.get("subcategory")
        if raw_subcategory in (None, ""):
            subcategory = None
        elif is_valid_subcategory(raw_subcategory):
            subcategory = TaskSubcategory(raw_subcategory)
        else:
            raise InvalidEnumValue("subcategory", raw_subcategory, [m.value for m in TaskSubcategory])

        name = data.get("name")
        name = name.strip() if isinstance(name, str) and name.strip() else UNTITLED
        who = data.get("who")
        who = who.strip() if isinstance(who, str) else ""

        raw_due = data.get("due_date")
        due_date = parse_due_date(raw_due, self.tz, self.settings.default_due_time)
        if raw_due not in (None, "") and due_date is None:
            # lenient: a bad date does not reject an otherwise valid classification
            logger.warning("dropping unparsable due_date %r", raw_due)
        if due_date is None and hint and hint.due_date:
            due_date = parse_due_date(hint.due_date, self.tz, self.settings.default_due_time)

        return ClassificationResult(
            name=name,
            type=TaskType(raw_type),
            category=TaskCategory(raw_category),
            subcategory=subcategory,
            who=who,
            due_date=due_date,
        )

    def manual_fallback(self, entry: str, hint: Optional[ClassificationHint] = None) -> Dict[str, Any]:
        """Default draft offered for manual completion when classification fails."""
        due_date = None
        if hint and hint.due_date:
            due_date = parse_due_date(hint.due_date, self.tz, self.settings.default_due_time)
        return {
            "entry": entry,
            "name": "",
            "type": TaskType.FOCUS,
            "category": TaskCategory.TASK,
            "subcategory": None,
            "who": "",
            "due_date": due_date,
            "completed": False,
        }
