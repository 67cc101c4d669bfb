from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db

router = APIRouter(prefix="/images", tags=["images"])


@router.get("/{image_id}", response_class=Response)
def get_image(image_id: str, db: Session = Depends(get_db)) -> Response:
    """Serve a stored receipt photo; the URL is what the vision model fetches."""
    image = crud.get_image(db, image_id)
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found.")
    return Response(
        content=image.data,
        media_type=image.content_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )
