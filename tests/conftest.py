from datetime import datetime, timedelta, timezone

import pytest
from mongomock_motor import AsyncMongoMockClient

from gymchat.config.settings import settings
from gymchat.repositories.conversation_repository import ConversationRepository
from gymchat.services.chat_service import ChatService
from gymchat.utils import realtime_bus


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", None)
    monkeypatch.setattr(realtime_bus, "_bus", None)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["gymchat_test"]


@pytest.fixture
def repo(db):
    return ConversationRepository(db)


class Clock:

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def clock():
    return Clock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def published():
    return []


@pytest.fixture
def service(repo, clock, published):
    async def publisher(participant_id: str, payload: str) -> None:
        published.append((participant_id, payload))

    return ChatService(repo, publisher=publisher, clock=clock)
