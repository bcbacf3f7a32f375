"""
CardProgress model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, UniqueConstraint
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime

if TYPE_CHECKING:
    from kadi.models.card import Card


class CardProgress(SQLModel, table=True):
    """CardProgress table - Leitner schedule entry, one per (owner, card)."""
    __tablename__ = "card_progress"
    __table_args__ = (
        UniqueConstraint("owner_key", "card_id", name="card_progress_owner_card_key"),
    )
    
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_key: str = Field(index=True)
    card_id: str = Field(foreign_key="cards.id", index=True)
    level: int = Field(default=0)  # Leitner box 0..MAX_LEVEL
    due_date: date  # UTC calendar day
    last_seen_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    updated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    
    # Relationships
    card: "Card" = Relationship(back_populates="progress_entries")
