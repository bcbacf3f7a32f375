"""
LearnSession model.
"""
from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy import DateTime
from typing import Optional, List
from datetime import datetime

from kadi.models.card import utcnow
from kadi.models.enums import LearnMode


class LearnSession(SQLModel, table=True):
    """LearnSession table - write-once summary of a finished session."""
    __tablename__ = "learn_sessions"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_key: str = Field(index=True)
    mode: LearnMode
    total_count: int = Field(default=0)
    correct_count: int = Field(default=0)
    wrong_card_ids: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=False), nullable=False, index=True)
    )
