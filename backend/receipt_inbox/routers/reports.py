from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..schemas import CategorySpending, SpendingSummaryOut
from ..summary import build_spending_summary

router = APIRouter(prefix="/users/{user_id}", tags=["reports"])


@router.get("/summary", response_model=SpendingSummaryOut)
def get_monthly_summary(
    user_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000),
    db: Session = Depends(get_db),
) -> SpendingSummaryOut:
    """Expense totals per category for one calendar month (UTC)."""
    if not crud.get_account(db, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    start = datetime(year, month, 1, tzinfo=timezone.utc)
    following = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(
        year, month + 1, 1, tzinfo=timezone.utc
    )
    start_ms = int(start.timestamp() * 1000)
    end_ms = int(following.timestamp() * 1000) - 1

    summary = build_spending_summary(db, user_id, start_ms, end_ms)
    return SpendingSummaryOut(
        start=start_ms,
        end=end_ms,
        total_spending=summary.total_spending,
        categories=[CategorySpending(name=name, amount=amount) for name, amount in summary.categories],
    )
