"""
Dashboard statistics endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from kadi.core.database import get_session
from kadi.models.enums import CardType
from kadi.schemas.stats import StatsOverview
from kadi.services.progress_store import SqlProgressStore
from kadi.services.stats_service import get_overview

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/overview", response_model=StatsOverview)
async def stats_overview(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """
    Card totals per type, level distribution (levels shown as 1-6), today's
    reviews, the rolling session history and averages over that history.
    """
    return await get_overview(SqlProgressStore(session), owner_key.strip(), card_type)
