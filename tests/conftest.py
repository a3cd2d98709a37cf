"""
Pytest configuration for the SoulScribe test suite.

Records live in a mongomock database so the real RecordStore queries run
without a MongoDB server. Helper fixtures insert moods, journals and chat
sessions with explicit timestamps; engine tests pin `now` to NOW so the
period windows are deterministic.
"""
from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from pymongo.errors import ServerSelectionTimeoutError

import main
from database import CHATS, JOURNALS, MOODS, RecordStore, count_words
from periods import utc_now

NOW = datetime(2024, 6, 15, 12, 0, 0)
USER = "user-1"
OTHER_USER = "user-2"


class BrokenDatabase:
    """Stands in for a database whose server cannot be reached."""

    def __getitem__(self, name):
        raise ServerSelectionTimeoutError("mongo-internal-host:27017: connection refused")


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["soulscribe_test"]


@pytest.fixture
def store(mongo_db):
    return RecordStore(mongo_db)


@pytest.fixture
def broken_store():
    return RecordStore(BrokenDatabase())


@pytest.fixture
def add_mood(store):
    def _add(created_at=NOW, mood="neutral", mood_score=3, user_id=USER, **extra):
        doc = {
            "user_id": user_id,
            "mood": mood,
            "mood_score": mood_score,
            "emotions": [],
            "activities": [],
            "created_at": created_at,
            "updated_at": created_at,
        }
        doc.update(extra)
        return store.create_document(MOODS, doc)
    return _add


@pytest.fixture
def add_journal(store):
    def _add(created_at=NOW, title="Entry", content="a quiet day", category="daily",
             is_favorite=False, is_archived=False, reading_time=1, user_id=USER):
        return store.create_document(JOURNALS, {
            "user_id": user_id,
            "title": title,
            "content": content,
            "category": category,
            "is_favorite": is_favorite,
            "is_archived": is_archived,
            "word_count": count_words(content),
            "reading_time": reading_time,
            "created_at": created_at,
            "updated_at": created_at,
        })
    return _add


@pytest.fixture
def add_chat(store):
    def _add(created_at=NOW, updated_at=None, session_id=None, topic="general",
             message_count=0, rating=None, is_active=True, user_id=USER):
        doc = {
            "user_id": user_id,
            "session_id": session_id or f"session_{created_at.timestamp():.0f}_{topic}",
            "messages": [
                {"role": "user", "content": f"message {i}", "timestamp": created_at, "metadata": {}}
                for i in range(message_count)
            ],
            "context": {"topic": topic},
            "is_active": is_active,
            "created_at": created_at,
            "updated_at": updated_at or created_at,
        }
        if rating is not None:
            doc["feedback"] = {"helpful": True, "rating": rating}
        return store.create_document(CHATS, doc)
    return _add


def make_token(user_id=USER, secret=None):
    return jwt.encode({"sub": user_id}, secret or main.JWT_SECRET_KEY, algorithm=main.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def client(store):
    main.app.dependency_overrides[main.get_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def broken_client(broken_store):
    main.app.dependency_overrides[main.get_store] = lambda: broken_store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def now():
    """Wall-clock now, for tests that go through the HTTP routes."""
    return utc_now().replace(microsecond=0)
