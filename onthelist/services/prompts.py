"""Prompt text for entry classification.

The enumerations are embedded verbatim so the model can only pick labels the
taxonomy accepts.
"""
from datetime import datetime, time
from typing import Optional

from ..domain.enums import TASK_TYPES, TASK_CATEGORIES, TASK_SUBCATEGORIES

WHO_EXAMPLES = [
    ("Call John about the party", "John"),
    ("Meet Sarah Smith for coffee", "Sarah Smith"),
    ("Mom needs help with her computer", ""),
    ("Pick up groceries", ""),
    ("Review proposal with Mike from marketing", "Mike"),
]


def _quoted(labels) -> str:
    return ", ".join(f'"{label}"' for label in labels)


def build_system_prompt(now: datetime, default_due_time: time) -> str:
    due_time = default_due_time.strftime("%H:%M")
    who_examples = "\n".join(f'- "{text}" -> who: "{who}"' for text, who in WHO_EXAMPLES)
    return f"""You are a helpful assistant that analyzes task entries and categorizes them.
For each entry, identify:
- name: a brief, clear title for the task
- type: exactly one of [{_quoted(TASK_TYPES)}]
- category: exactly one of [{_quoted(TASK_CATEGORIES)}]
- subcategory: exactly one of [{_quoted(TASK_SUBCATEGORIES)}], or null if none applies
- who: the person involved
- due_date: the deadline, if one is mentioned

Guidelines for type selection:
- "Focus": proactive tasks or things to remember that need active attention, not backlog items
- "Follow up": questions, requests or tasks involving other people that can wait for the next meeting or conversation
- "Save for later": recommendations or discoveries (books, movies, restaurants, etc.) to reference later

Rules for who:
- Only extract a real person's name (e.g. "John", "Sarah Smith"), never a generic reference such as "mom" or "boss".
- If no specific name is mentioned, use an empty string.
{who_examples}

Rules for due_date:
- Today is {now.strftime("%A")}, {now.isoformat(timespec="minutes")}.
- Look for explicit dates ("due on March 15th", "deadline: 3/15/24"), relative dates ("next Friday", "in 2 weeks") and times ("by 3pm", "before 15:00").
- Resolve relative dates and bare times against today and return an ISO 8601 timestamp (YYYY-MM-DDTHH:MM:SS).
- If a date is mentioned without a time, use {due_time}.
- If no date or deadline is mentioned, use null.

Respond with a JSON object with exactly these fields: name, type, category, subcategory, who, due_date.
The type, category and subcategory values must match the lists above exactly."""


def build_user_prompt(entry: str, due_date_hint: Optional[str] = None) -> str:
    if not due_date_hint:
        return entry
    return f"{entry}\n\n(Due date provided by the user: {due_date_hint})"
