import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .context import get_chat_client
from .db import Base, engine
from .routers import categories, images, receipts, reports, telegram, transactions, users

settings = get_settings()

logging.getLogger("receipt_inbox").setLevel(settings.log_level)

app = FastAPI(title="Receipt Inbox API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(categories.router, prefix=settings.api_prefix)
app.include_router(transactions.router, prefix=settings.api_prefix)
app.include_router(receipts.router, prefix=settings.api_prefix)
app.include_router(reports.router, prefix=settings.api_prefix)
app.include_router(images.router, prefix=settings.api_prefix)
app.include_router(telegram.router, prefix=settings.api_prefix)


@app.on_event("startup")
def on_startup() -> None:
    """Ensure database tables exist."""
    Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_chat_client().close()


@app.get("/")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
