from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db import get_db
from .extraction import ExtractionEngine
from .llm_client import LLMClient
from .receipts import ReceiptStore
from .storage import ImageStore
from .telegram_client import TelegramClient


@dataclass
class RequestContext:
    """Collaborators for handling one webhook update."""

    store: ReceiptStore
    images: ImageStore
    chat: TelegramClient
    extractor: ExtractionEngine
    settings: Settings

    @property
    def db(self) -> Session:
        return self.store.db


@lru_cache
def get_chat_client() -> TelegramClient:
    return TelegramClient(get_settings().telegram_bot_token)


@lru_cache
def get_llm_client() -> LLMClient:
    settings = get_settings()
    return LLMClient(settings.openai_api_key, timeout=settings.ai_timeout_seconds)


def build_context(
    db: Session,
    chat: TelegramClient,
    llm: LLMClient,
    settings: Settings | None = None,
) -> RequestContext:
    settings = settings or get_settings()
    return RequestContext(
        store=ReceiptStore(db),
        images=ImageStore(db, settings),
        chat=chat,
        extractor=ExtractionEngine(llm, settings),
        settings=settings,
    )


def get_request_context(
    db: Session = Depends(get_db),
    chat: TelegramClient = Depends(get_chat_client),
    llm: LLMClient = Depends(get_llm_client),
) -> RequestContext:
    """FastAPI dependency building a fresh context per request."""
    return build_context(db, chat, llm)
