"""
Card schemas.
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime

from kadi.models.enums import CardType


class CardCreateRequest(BaseModel):
    """Create a card for an owner."""
    owner_key: str = Field(..., min_length=1, description="Owner key")
    type: CardType = Field(CardType.VOCAB, description="Card type")
    front_text: str = Field(..., min_length=1, description="Front side text")
    back_text: str = Field(..., min_length=1, description="Back side text")
    image_path: Optional[str] = Field(None, description="Image reference in blob storage")
    audio_path: Optional[str] = Field(None, description="Audio reference in blob storage")
    
    class Config:
        json_schema_extra = {
            "example": {
                "owner_key": "owner-1",
                "type": "vocab",
                "front_text": "Habari",
                "back_text": "Hallo"
            }
        }


class CardCreateResponse(BaseModel):
    status: Literal["created", "exists"]
    id: str


class CardResponse(BaseModel):
    id: str
    type: CardType
    front_text: str
    back_text: str
    image_path: Optional[str] = None
    audio_path: Optional[str] = None
    created_at: datetime
    
    class Config:
        from_attributes = True


class CardListResponse(BaseModel):
    items: List[CardResponse]


class CardDeleteResponse(BaseModel):
    message: str
    progress_deleted: int
    last_missed_deleted: int
