from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from . import crud
from .config import Settings

logger = logging.getLogger(__name__)


def image_url(settings: Settings, image_id: str | None) -> str | None:
    if not image_id:
        return None
    return f"{settings.public_base_url}{settings.api_prefix}/images/{image_id}"


class ImageStore:
    """Receipt photos kept in the database and served by the images router."""

    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    def save(self, account_id: str, data: bytes, content_type: str = "image/jpeg") -> str:
        image = crud.store_image(self.db, account_id, data, content_type)
        logger.info("Stored %d byte image %s for account %s", len(data), image.id, account_id)
        return image.id

    def url_for(self, image_id: str) -> str:
        return image_url(self.settings, image_id)

    def delete(self, image_id: str) -> bool:
        return crud.delete_image(self.db, image_id)
