"""
TeamHub realtime - test configuration and fixtures
"""
import os
import time
from typing import Any, Dict, List, Optional

import pytest
from jose import jwt

TEST_SECRET = "test-jwt-secret-for-testing-only"

# Set testing environment before the app reads its settings
os.environ["JWT_SECRET"] = TEST_SECRET
os.environ["STORE_PATH"] = ""

from teamhub.core import state
from teamhub.core.config import settings
from teamhub.services.document_store import DocumentStore


USERS = {
    "alice": {"name": "Alice", "email": "alice@example.com", "role": "team", "teamId": "T1"},
    "bob": {"name": "Bob", "email": "bob@example.com", "role": "team", "teamId": "T1"},
    "carol": {"name": "Carol", "email": "carol@example.com", "role": "team", "teamId": "T1"},
    "dave": {"name": "Dave", "email": "dave@example.com", "role": "team", "teamId": "T2"},
    "gina": {"name": "Gina", "email": "gina@example.com", "role": "global", "globalId": "Global123"},
    "gus": {"name": "Gus", "email": "gus@example.com", "role": "global", "globalId": "Global123"},
    "sam": {"name": "Sam", "email": "sam@example.com", "role": "single"},
}


def make_token(
    user_id: str,
    role: str = "team",
    team_id: Optional[str] = None,
    name: Optional[str] = None,
    expires_in: int = 3600,
    not_before: Optional[int] = None,
    secret: str = TEST_SECRET,
) -> str:
    now = int(time.time())
    user: Dict[str, Any] = {"id": user_id, "role": role}
    if team_id:
        user["teamId"] = team_id
    claims: Dict[str, Any] = {"user": user, "name": name or user_id, "iat": now, "exp": now + expires_in}
    if not_before is not None:
        claims["nbf"] = now + not_before
    return jwt.encode(claims, secret, algorithm="HS256")


def token_for(user_id: str, **overrides) -> str:
    user = USERS[user_id]
    return make_token(user_id, role=user["role"], team_id=user.get("teamId"), name=user["name"], **overrides)


def seed(store: DocumentStore, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a document without going through the async API."""
    store.collections.setdefault(collection, {})[document["id"]] = document
    return document


class FakeWebSocket:
    """Stands in for a Starlette WebSocket: records every frame sent to it."""

    def __init__(self) -> None:
        self.accepted = False
        self.sent: List[Dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: Any) -> None:
        self.sent.append(data)

    def events(self, event_type: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.sent]

    def clear(self) -> None:
        self.sent.clear()


class BrokenWebSocket(FakeWebSocket):
    async def send_json(self, data: Any) -> None:
        raise RuntimeError("socket closed")


@pytest.fixture(autouse=True)
def store(monkeypatch) -> DocumentStore:
    """Fresh in-memory store and freshly wired services for each test."""
    monkeypatch.setattr(settings, "JWT_SECRET", TEST_SECRET)
    document_store = DocumentStore()
    state.reset(document_store)
    return document_store


@pytest.fixture
def users(store: DocumentStore) -> Dict[str, Dict[str, Any]]:
    for user_id, user in USERS.items():
        seed(store, "users", {"id": user_id, **user})
    return USERS


@pytest.fixture
def connect():
    async def _connect(websocket: Optional[FakeWebSocket] = None):
        return await state.connection_manager.connect(websocket or FakeWebSocket())
    return _connect


@pytest.fixture
def login(connect, users):
    """Connect a fake socket and run init (or init-personal-chat) for a seeded user."""
    async def _login(user_id: str, personal: bool = False):
        connection = await connect()
        if personal:
            await state.connection_manager.init_personal_chat(connection, token_for(user_id))
        else:
            await state.connection_manager.init(connection, token_for(user_id))
        connection.websocket.clear()
        return connection
    return _login


@pytest.fixture
def open_conversation(login):
    """Personal-chat socket for `user_id` with the conversation to `partner_id` open."""
    async def _open(user_id: str, partner_id: str):
        connection = await login(user_id, personal=True)
        await state.conversation_router.join(connection, partner_id)
        connection.websocket.clear()
        return connection
    return _open
