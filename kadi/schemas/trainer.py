"""
Trainer schemas: card snapshots, session state, grading and session summaries.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime

from kadi.models.enums import CardType, LearnMode, TrainerStatus, LastMissedAction


class CardSnapshot(BaseModel):
    """Point-in-time copy of a card and its schedule, taken at session start."""
    card_id: str = Field(..., description="Card ID")
    level: int = Field(0, description="Leitner level at fetch time (0-5)")
    due_date: Optional[date] = Field(None, description="Due date at fetch time (UTC)")
    front_text: str = ""
    back_text: str = ""
    type: Optional[CardType] = None
    image_path: Optional[str] = None
    audio_path: Optional[str] = None
    
    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "card_id": "3f6c1b0e-2d4e-4d8e-9a51-0c7f7b1e2a10",
                "level": 2,
                "due_date": "2024-01-01",
                "front_text": "Habari",
                "back_text": "Hallo",
                "type": "vocab",
                "image_path": None,
                "audio_path": None
            }
        }


class GradeOutcome(BaseModel):
    """Most recent grading outcome, for UI feedback only."""
    correct: bool
    card_id: str


class TrainerState(BaseModel):
    """Client-local state of one learning session."""
    items: List[CardSnapshot] = Field(default_factory=list)
    index: int = 0
    reveal: bool = False
    status: TrainerStatus = TrainerStatus.IDLE
    last_result: Optional[GradeOutcome] = None


class GradeResult(BaseModel):
    """Outcome of applying the grading policy to one card."""
    card_id: str
    correct: bool
    previous_level: int
    new_level: int
    due_date: date
    graded_at: datetime


class ItemsResponse(BaseModel):
    """List of card snapshots."""
    items: List[CardSnapshot]


class GradeRequest(BaseModel):
    """Grade one card."""
    owner_key: str = Field(..., min_length=1, description="Owner key")
    card_id: str = Field(..., min_length=1, description="Card ID")
    correct: bool = Field(..., description="Whether the card was answered correctly")
    current_level: Optional[float] = Field(None, description="Level shown to the learner; clamped into 0-5")
    
    class Config:
        json_schema_extra = {
            "example": {
                "owner_key": "owner-1",
                "card_id": "3f6c1b0e-2d4e-4d8e-9a51-0c7f7b1e2a10",
                "correct": True,
                "current_level": 2
            }
        }


class GradeResponse(BaseModel):
    """Persisted schedule after grading."""
    ok: bool = True
    new_level: int
    due_date: date


class LastMissedRequest(BaseModel):
    """Add or remove one card from the last-missed set."""
    owner_key: str = Field(..., min_length=1)
    card_id: str = Field(..., min_length=1)
    action: LastMissedAction = LastMissedAction.ADD


class ClearLastMissedRequest(BaseModel):
    """Clear one card, or the whole last-missed set when card_id is omitted."""
    owner_key: str = Field(..., min_length=1)
    card_id: Optional[str] = None


class ClearLastMissedResponse(BaseModel):
    ok: bool = True
    removed_count: int


class OkResponse(BaseModel):
    ok: bool = True


class SessionSummary(BaseModel):
    """Write-once record appended when a session ends."""
    mode: LearnMode
    total_count: int = Field(0, ge=0)
    correct_count: int = Field(0, ge=0)
    wrong_card_ids: Optional[List[str]] = Field(default_factory=list)


class SessionSummaryRequest(SessionSummary):
    """Session summary as posted by a client."""
    owner_key: str = Field(..., min_length=1)
    
    class Config:
        json_schema_extra = {
            "example": {
                "owner_key": "owner-1",
                "mode": "LEITNER",
                "total_count": 12,
                "correct_count": 9,
                "wrong_card_ids": ["a", "b", "c"]
            }
        }


class SessionSummaryRecord(SessionSummary):
    """Stored session summary."""
    created_at: datetime
    
    class Config:
        from_attributes = True


class SessionSummaryListResponse(BaseModel):
    items: List[SessionSummaryRecord]


class SetupCounts(BaseModel):
    """Counts shown before a session starts."""
    today_due: int = 0
    total_cards: int = 0
    last_missed_count: int = 0
