"""Shared test fixtures for backend tests."""

import copy
import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from dostify.api.deps import get_orchestrator
from dostify.core.config import Settings
from dostify.core.database import get_session
from dostify.models.conversation import ChatMessage, ChatSession
from dostify.services.llm.base import BaseLLMProvider, LLMResponse, LLMToolCall
from dostify.services.orchestrator import ChatOrchestrator
from dostify.services.tools.base import ToolContext
from dostify.services.tools.registry import create_default_registry

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

# In-memory SQLite with StaticPool so all connections (including threads) share one DB
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def get_test_session():
    with Session(test_engine) as session:
        yield session


class FakeGateway(BaseLLMProvider):
    """Scripted language model: returns (or raises) the queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": copy.deepcopy(messages), "tools": tools})
        if not self.responses:
            raise AssertionError("Unexpected language model call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def reply(text):
    return LLMResponse(content=text, finish_reason="stop")


def tool_calls(*calls):
    """Build a tool-requesting response from (call_id, tool_name, arguments) tuples."""
    return LLMResponse(
        content=None,
        tool_calls=[
            LLMToolCall(id=cid, name=name, arguments=args if isinstance(args, str) else json.dumps(args))
            for cid, name, args in calls
        ],
        finish_reason="tool_calls",
    )


def seed_session(user_id=USER_ID, session_id="s1", title=None, messages=None) -> int:
    """Insert a chat session + (sender, content) messages directly into the test DB."""
    with Session(test_engine) as session:
        chat = ChatSession(user_id=user_id, session_id=session_id, title=title)
        session.add(chat)
        session.commit()
        session.refresh(chat)
        for sender, content in messages or []:
            session.add(ChatMessage(chat_session_id=chat.id, sender=sender, content=content))
        session.commit()
        return chat.id  # type: ignore


def stored_messages(chat_pk: int | None = None, session_id: str = "s1", user_id: str = USER_ID) -> list[ChatMessage]:
    with Session(test_engine) as session:
        if chat_pk is None:
            chat = session.exec(
                select(ChatSession).where(
                    ChatSession.user_id == user_id, ChatSession.session_id == session_id
                )
            ).one()
            chat_pk = chat.id
        return list(
            session.exec(
                select(ChatMessage)
                .where(ChatMessage.chat_session_id == chat_pk)
                .order_by(ChatMessage.id)
            ).all()
        )


@pytest.fixture(autouse=True)
def setup_test_db():
    """Create all tables before each test, drop after."""
    import dostify.models  # noqa: F401 - register models
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def db():
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def test_settings():
    return Settings(chat_context_window=10, ai_api_key="", debug=False)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(test_settings, gateway):
    return ChatOrchestrator(test_settings, gateway, create_default_registry())


@pytest.fixture
def tool_ctx(db):
    """ToolContext over an empty session 's1' owned by USER_ID."""
    chat_pk = seed_session()
    chat = db.get(ChatSession, chat_pk)
    return ToolContext(db=db, user_id=USER_ID, chat_session=chat, prior_message_ids=[])


@pytest.fixture
def auth_headers():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def client(orchestrator):
    """FastAPI TestClient with the database and language model patched."""
    with patch("dostify.core.database.engine", test_engine):
        from dostify.main import app

        # Use FastAPI's dependency override for get_session
        app.dependency_overrides[get_session] = get_test_session
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()
