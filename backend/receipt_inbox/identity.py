"""Binding Telegram users to internal accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from . import crud
from .errors import AccountNotFound, NotLinked, RelinkNotAllowed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkResult:
    account_id: str
    # Account the Telegram id was taken from, when it was bound elsewhere.
    rebound_from: str | None = None
    already_linked: bool = False


def link_external_identity(
    db: Session,
    internal_user_id: str,
    external_chat_id: str,
    *,
    allow_relink: bool = True,
) -> LinkResult:
    account = crud.get_account(db, internal_user_id) if internal_user_id else None
    if account is None:
        raise AccountNotFound(f"account {internal_user_id!r} does not exist")

    if account.telegram_user_id == external_chat_id:
        return LinkResult(account_id=account.id, already_linked=True)

    holder = crud.get_account_by_telegram_id(db, external_chat_id)
    if holder is not None and not allow_relink:
        raise RelinkNotAllowed(f"telegram id {external_chat_id} belongs to account {holder.id}")

    previous = crud.set_telegram_user_id(db, account, external_chat_id)
    rebound_from = previous if previous and previous != account.id else None
    if rebound_from:
        logger.warning(
            "Telegram id %s moved from account %s to account %s",
            external_chat_id,
            rebound_from,
            account.id,
        )
    else:
        logger.info("Linked Telegram id %s to account %s", external_chat_id, account.id)
    return LinkResult(account_id=account.id, rebound_from=rebound_from)


def resolve_account_by_external_id(db: Session, external_chat_id: str) -> str:
    account = crud.get_account_by_telegram_id(db, external_chat_id)
    if account is None:
        raise NotLinked(f"telegram id {external_chat_id} is not linked")
    return account.id
