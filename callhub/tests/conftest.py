import asyncio
import os
from datetime import timedelta

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from callhub.core import database
from callhub.core.database import Base, engine
from callhub.core.deps import get_webhook_queue
from callhub.core.timeutils import utc_now
from callhub.main import app
from callhub.models import Agent, CallRecord
from callhub.services.storage import SqlAlchemyStorage
from callhub.services.webhook_processor import WebhookProcessor
from callhub.tests.factories import AGENT_NUMBER, ASSISTANT_ID, CUSTOMER_NUMBER, USER_ID


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def notify(self, user_id, event_name, payload):
        self.events.append((user_id, event_name, payload))


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def storage(db):
    return SqlAlchemyStorage(db)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def processor(storage, notifier):
    return WebhookProcessor(storage, notifier)


@pytest.fixture()
def agent(db):
    record = Agent(user_id=USER_ID, name="Front desk", vapi_assistant_id=ASSISTANT_ID)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture()
def make_call(db, agent):
    def _make_call(**fields):
        values = {
            "agent_id": agent.id,
            "direction": "inbound",
            "from_number": CUSTOMER_NUMBER,
            "to_number": AGENT_NUMBER,
            "started_at": utc_now() - timedelta(minutes=1),
            "created_at": utc_now() - timedelta(minutes=1),
            "duration": 0,
            "cost": 0.0,
            "outcome": "in-progress",
        }
        values.update(fields)
        record = CallRecord(**values)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make_call


@pytest.fixture()
def webhook_queue():
    return asyncio.Queue()


@pytest.fixture()
def client(db, webhook_queue):
    def override_get_db():
        yield db

    app.dependency_overrides[database.get_db] = override_get_db
    app.dependency_overrides[get_webhook_queue] = lambda: webhook_queue
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
