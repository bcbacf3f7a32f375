"""
Learning endpoints: due cards, grading, last-missed set, session history.
"""
# pyright: reportAttributeAccessIssue=false
# pyright: reportCallIssue=false
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select
from typing import Optional
from datetime import date, timedelta
import logging

from kadi.core.config import settings
from kadi.core.database import get_session
from kadi.models.card import Card
from kadi.models.enums import CardType, LastMissedAction
from kadi.schemas.stats import LeitnerStats, ProgressListResponse
from kadi.schemas.trainer import (
    ItemsResponse,
    GradeRequest,
    GradeResponse,
    LastMissedRequest,
    ClearLastMissedRequest,
    ClearLastMissedResponse,
    OkResponse,
    SessionSummary,
    SessionSummaryRequest,
    SessionSummaryListResponse,
    SetupCounts,
)
from kadi.services.leitner import grade_card, utc_today
from kadi.services.progress_store import SqlProgressStore
from kadi.services.stats_service import get_leitner_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/learn", tags=["learn"])


def _require_card(session: Session, owner_key: str, card_id: str) -> Card:
    card = session.exec(
        select(Card).where(Card.id == card_id, Card.owner_key == owner_key)
    ).first()
    if not card:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card with id {card_id} not found"
        )
    return card


@router.get("/today", response_model=ItemsResponse)
async def get_today_items(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """Cards due today (UTC) or earlier, oldest due date first."""
    items = await SqlProgressStore(session).fetch_due_cards(owner_key.strip(), card_type)
    return ItemsResponse(items=items)


@router.post("/grade", response_model=GradeResponse)
async def grade(
    request: GradeRequest,
    session: Session = Depends(get_session)
):
    """
    Grade a card and save its new schedule.

    Correct answers promote the card one level (max 5), wrong answers reset it
    to level 0. The due date is today (UTC) plus the new level's interval.
    Grading the same card twice on the same day with the same input yields
    the same schedule.
    """
    owner_key = request.owner_key.strip()
    card_id = request.card_id.strip()
    _require_card(session, owner_key, card_id)

    result = grade_card(card_id, request.current_level, request.correct)
    await SqlProgressStore(session).upsert_grade(owner_key, result)

    return GradeResponse(new_level=result.new_level, due_date=result.due_date)


@router.get("/last-missed", response_model=ItemsResponse)
async def get_last_missed(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """Cards recently answered wrong."""
    items = await SqlProgressStore(session).fetch_last_missed(owner_key.strip(), card_type)
    return ItemsResponse(items=items)


@router.post("/last-missed", response_model=OkResponse)
async def update_last_missed(
    request: LastMissedRequest,
    session: Session = Depends(get_session)
):
    """Add a card to, or remove it from, the last-missed set. Idempotent."""
    owner_key = request.owner_key.strip()
    card_id = request.card_id.strip()
    store = SqlProgressStore(session)

    if request.action == LastMissedAction.ADD:
        _require_card(session, owner_key, card_id)
        await store.upsert_last_missed(owner_key, card_id)
    else:
        await store.remove_last_missed(owner_key, card_id)

    return OkResponse()


@router.post("/clear-last-missed", response_model=ClearLastMissedResponse)
async def clear_last_missed(
    request: ClearLastMissedRequest,
    session: Session = Depends(get_session)
):
    """Clear one card from the last-missed set, or the whole set."""
    card_id = request.card_id.strip() if request.card_id else None
    removed = await SqlProgressStore(session).clear_last_missed(request.owner_key.strip(), card_id)
    logger.info(f"Cleared {removed} last-missed entries for owner {request.owner_key}")
    return ClearLastMissedResponse(removed_count=removed)


@router.post("/sessions", response_model=OkResponse, status_code=status.HTTP_201_CREATED)
async def create_learn_session(
    request: SessionSummaryRequest,
    session: Session = Depends(get_session)
):
    """Append a finished session summary."""
    summary = SessionSummary.model_validate(request.model_dump(exclude={"owner_key"}))
    await SqlProgressStore(session).append_session_summary(request.owner_key.strip(), summary)
    return OkResponse()


@router.get("/sessions", response_model=SessionSummaryListResponse)
async def list_learn_sessions(
    owner_key: str = Query(..., min_length=1),
    start: Optional[date] = None,
    end: Optional[date] = None,
    session: Session = Depends(get_session)
):
    """Session summaries created between start and end (UTC days, inclusive)."""
    end = end or utc_today()
    start = start or end - timedelta(days=settings.stats_history_days - 1)
    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end"
        )
    items = await SqlProgressStore(session).fetch_session_summaries(owner_key.strip(), start, end)
    return SessionSummaryListResponse(items=items)


@router.get("/progress", response_model=ProgressListResponse)
async def list_progress(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """Raw schedule entries (level and due date per card)."""
    items = await SqlProgressStore(session).fetch_progress_entries(owner_key.strip(), card_type)
    return ProgressListResponse(items=items)


@router.get("/stats", response_model=LeitnerStats)
async def leitner_stats(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """Level distribution, due buckets and next due date."""
    return await get_leitner_stats(SqlProgressStore(session), owner_key.strip(), card_type)


@router.get("/setup-counts", response_model=SetupCounts)
async def setup_counts(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """Due, total and last-missed counts shown before starting a session."""
    return await SqlProgressStore(session).count_setup(owner_key.strip(), card_type)
