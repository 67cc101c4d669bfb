import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PUBLIC_BASE_URL"] = "https://receipts.example.com"
os.environ.pop("TELEGRAM_WEBHOOK_SECRET", None)

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from receipt_inbox import crud  # noqa: E402
from receipt_inbox.context import build_context, get_chat_client, get_llm_client  # noqa: E402
from receipt_inbox.db import Base, get_db  # noqa: E402
from receipt_inbox.errors import DownstreamHttpFailure  # noqa: E402
from receipt_inbox.main import app  # noqa: E402
from receipt_inbox.schemas import AccountCreate, CategoryCreate  # noqa: E402


test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


class FakeChatClient:
    """Records outbound Telegram calls instead of sending them."""

    def __init__(self):
        self.sent = []
        self.edited = []
        self.answered = []
        self.files = {}
        self.fail_send = False
        self.fail_edit = False
        self.fail_answer = False

    async def send_message(self, chat_id, text, *, reply_markup=None, parse_mode=None):
        if self.fail_send:
            raise DownstreamHttpFailure("sendMessage failed: network down")
        self.sent.append(
            {"chat_id": chat_id, "text": text, "reply_markup": reply_markup, "parse_mode": parse_mode}
        )

    async def edit_message_text(self, chat_id, message_id, text, *, parse_mode=None):
        if self.fail_edit:
            raise DownstreamHttpFailure("editMessageText failed: message is too old")
        self.edited.append({"chat_id": chat_id, "message_id": message_id, "text": text})

    async def answer_callback_query(self, callback_query_id, text=None):
        if self.fail_answer:
            raise DownstreamHttpFailure("answerCallbackQuery failed: query is too old")
        self.answered.append(callback_query_id)

    async def download_file(self, file_id):
        return self.files[file_id]

    async def close(self):
        pass


class FakeLLMClient:
    """Returns queued responses; queued exceptions are raised instead."""

    def __init__(self):
        self.responses = []
        self.calls = []

    def complete_json(self, prompt, *, model, image_url=None):
        self.calls.append({"prompt": prompt, "model": model, "image_url": image_url})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def db():
    Base.metadata.drop_all(test_engine)
    Base.metadata.create_all(test_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def chat():
    return FakeChatClient()


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def ctx(db, chat, llm):
    return build_context(db, chat, llm)


@pytest.fixture
def client(db, chat, llm):
    """TestClient wired to the in-memory database and the fake adapters."""

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chat_client] = lambda: chat
    app.dependency_overrides[get_llm_client] = lambda: llm

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def account(db):
    """An account with one expense and one income category."""
    account = crud.create_account(db, AccountCreate(id="user_1", name="Ana"))
    dining = crud.create_category(
        db,
        account.id,
        CategoryCreate(name="Dining", type="expense", description="Restaurants and coffee"),
    )
    salary = crud.create_category(
        db,
        account.id,
        CategoryCreate(name="Salary", type="income", nature="fixed", payment_due_day=25),
    )
    return {"id": account.id, "dining_id": dining.id, "salary_id": salary.id}


@pytest.fixture
def linked_account(db, account):
    stored = crud.get_account(db, account["id"])
    crud.set_telegram_user_id(db, stored, "555")
    return {**account, "telegram_id": 555}
