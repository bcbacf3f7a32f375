"""
LastMissed model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, UniqueConstraint
from typing import Optional
from datetime import datetime

from kadi.models.card import utcnow


class LastMissed(SQLModel, table=True):
    """Cards an owner recently answered wrong; a set, not a log."""
    __tablename__ = "learn_last_missed"
    __table_args__ = (
        UniqueConstraint("owner_key", "card_id", name="learn_last_missed_owner_card_key"),
    )
    
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_key: str = Field(index=True)
    card_id: str = Field(foreign_key="cards.id")
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
