"""
Statistics schemas.
"""
from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import date

from kadi.models.enums import CardType


class ProgressEntry(BaseModel):
    """Schedule entry as read by the stats aggregator."""
    card_id: Optional[str] = None
    level: Optional[int] = 0
    due_date: Optional[date] = None
    type: Optional[CardType] = None
    
    class Config:
        from_attributes = True


class ProgressListResponse(BaseModel):
    items: List[ProgressEntry]


class LevelCount(BaseModel):
    """Number of cards in one Leitner level."""
    level: int
    label: str
    count: int


class LeitnerStats(BaseModel):
    """Schedule overview for one owner."""
    total: int
    by_level: List[LevelCount]
    due_today_count: int
    due_tomorrow_count: int
    due_later_count: int
    next_due_date: Optional[date] = None
    next_due_in_days: Optional[int] = None


class TypeTotals(BaseModel):
    all: int = 0
    vocab: int = 0
    sentence: int = 0


class ReviewTotals(BaseModel):
    reviewed: int = 0
    correct: int = 0
    wrong: int = 0


class DayHistory(ReviewTotals):
    """Session totals for one UTC calendar day."""
    day: date
    sessions: int = 0


class Averages(BaseModel):
    accuracy: float = 0.0
    avg_wrong_per_session: float = 0.0
    avg_cards_per_session: float = 0.0


class StatsOverview(BaseModel):
    """Dashboard rollup."""
    totals: TypeTotals
    by_level: Dict[str, int]
    today: ReviewTotals
    history: List[DayHistory]
    averages: Averages
