import json
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from onthelist.config import Settings
from onthelist.db.session import build_engine, build_session_factory, init_schema
from onthelist.domain.enums import TaskType, TaskCategory
from onthelist.domain.task import TaskRecord
from onthelist.main import create_app
from onthelist.services.change_feed import ChangeFeed
from onthelist.services.task_gateway import TaskGateway

# Monday; the following Friday is 2026-10-23
FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FakeCompletionProvider:
    """Deterministic stand-in for the language model; records every prompt it sees."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def respond_with(self, payload):
        self.reply = payload if payload is None or isinstance(payload, str) else json.dumps(payload)
        self.error = None

    def fail_with(self, error):
        self.error = error

    def complete_json(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def provider():
    return FakeCompletionProvider()


@pytest.fixture(scope="function")  # fresh database per test
def app(settings, provider):
    return create_app(settings, provider)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def gateway(settings, feed):
    engine = build_engine(settings.database_url)
    init_schema(engine)
    yield TaskGateway(build_session_factory(engine), feed)
    engine.dispose()


@pytest.fixture
def make_task():
    """Factory for in-memory task records (no database involved)."""
    def _make(**overrides):
        fields = dict(
            id=str(uuid.uuid4()),
            entry="Pick up groceries",
            name="Groceries",
            type=TaskType.FOCUS,
            category=TaskCategory.TASK,
            subcategory=None,
            who="",
            due_date=None,
            completed=False,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        fields.update(overrides)
        return TaskRecord(**fields)
    return _make
