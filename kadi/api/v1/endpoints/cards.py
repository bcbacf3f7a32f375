"""
Card endpoints.
"""
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlmodel import Session
from typing import Optional

from kadi.core.database import get_session
from kadi.models.enums import CardType
from kadi.schemas.card import (
    CardCreateRequest,
    CardCreateResponse,
    CardResponse,
    CardListResponse,
    CardDeleteResponse,
)
from kadi.services.card_service import create_card, list_cards, delete_card

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", response_model=CardCreateResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: CardCreateRequest,
    session: Session = Depends(get_session)
):
    """
    Create a card and schedule it for today at level 0.

    If the owner already has a card with the same front and back text, no card
    is created and the existing ID is returned with status 'exists'.
    """
    card, created = create_card(session, request)
    if not created:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=CardCreateResponse(status="exists", id=card.id).model_dump()
        )
    return CardCreateResponse(status="created", id=card.id)


@router.get("/all", response_model=CardListResponse)
async def get_all_cards(
    owner_key: str = Query(..., min_length=1),
    card_type: Optional[CardType] = Query(None, alias="type"),
    session: Session = Depends(get_session)
):
    """All cards of an owner, regardless of schedule."""
    cards = list_cards(session, owner_key.strip(), card_type)
    return CardListResponse(items=[CardResponse.model_validate(card) for card in cards])


@router.delete("/{card_id}", response_model=CardDeleteResponse)
async def remove_card(
    card_id: str,
    owner_key: str = Query(..., min_length=1),
    session: Session = Depends(get_session)
):
    """Delete a card, its schedule entry and its last-missed membership."""
    counts = delete_card(session, owner_key.strip(), card_id)
    return CardDeleteResponse(message=f"Card {card_id} deleted", **counts)
