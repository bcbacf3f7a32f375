"""
Card model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime, timezone
import uuid

from kadi.models.enums import CardType

if TYPE_CHECKING:
    from kadi.models.card_progress import CardProgress


def _new_card_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime (stored timestamps carry no zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Card(SQLModel, table=True):
    """Card table - a bilingual front/back pair owned by one learner."""
    __tablename__ = "cards"
    
    id: str = Field(default_factory=_new_card_id, primary_key=True)
    owner_key: str = Field(index=True)
    type: CardType = Field(default=CardType.VOCAB)
    front_text: str
    back_text: str
    image_path: Optional[str] = None  # Opaque blob storage reference
    audio_path: Optional[str] = None  # Opaque blob storage reference
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    
    # Relationships
    progress_entries: List["CardProgress"] = Relationship(back_populates="card")
