"""
Card service for creating, listing and deleting cards.

Owns the progress entry lifecycle: a new card gets an entry at level 0 due
today, and deleting a card removes its entry and last-missed membership.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, select

from kadi.core.exceptions import NotFoundError
from kadi.models.card import Card
from kadi.models.card_progress import CardProgress
from kadi.models.enums import CardType
from kadi.models.last_missed import LastMissed
from kadi.schemas.card import CardCreateRequest
from kadi.services.leitner import MIN_LEVEL, utc_today

logger = logging.getLogger(__name__)


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


def find_duplicate_card(session: Session, owner_key: str, front_text: str, back_text: str) -> Optional[Card]:
    """Existing card of the owner with the same front and back text."""
    cards = session.exec(select(Card).where(Card.owner_key == owner_key)).all()
    for card in cards:
        if _same_text(card.front_text, front_text) and _same_text(card.back_text, back_text):
            return card
    return None


def create_card(session: Session, request: CardCreateRequest) -> Tuple[Card, bool]:
    """
    Create a card and its first schedule entry.

    Args:
        session: Database session
        request: Card data

    Returns:
        (card, created). When the owner already has a card with the same
        texts, that card is returned with created=False.
    """
    owner_key = request.owner_key.strip()
    existing = find_duplicate_card(session, owner_key, request.front_text, request.back_text)
    if existing:
        logger.info(f"Card for owner {owner_key} already exists: {existing.id}")
        return existing, False

    card = Card(
        owner_key=owner_key,
        type=request.type,
        front_text=request.front_text.strip(),
        back_text=request.back_text.strip(),
        image_path=request.image_path,
        audio_path=request.audio_path,
    )
    session.add(card)
    session.flush()  # Flush to get the card ID

    session.add(CardProgress(
        owner_key=owner_key,
        card_id=card.id,
        level=MIN_LEVEL,
        due_date=utc_today(),
    ))
    session.commit()
    session.refresh(card)

    logger.info(f"Created card {card.id} ({card.type.value}) for owner {owner_key}")
    return card, True


def list_cards(session: Session, owner_key: str, card_type: Optional[CardType] = None) -> List[Card]:
    query = select(Card).where(Card.owner_key == owner_key).order_by(Card.created_at)
    if card_type is not None:
        query = query.where(Card.type == card_type)
    return list(session.exec(query).all())


def delete_card(session: Session, owner_key: str, card_id: str) -> Dict[str, Any]:
    """
    Delete a card together with its schedule entry and last-missed membership.

    Deletes in foreign key order:
    1. CardProgress rows
    2. LastMissed rows
    3. The card

    Raises:
        NotFoundError: If the owner has no such card
    """
    card = session.exec(
        select(Card).where(Card.id == card_id, Card.owner_key == owner_key)
    ).first()
    if not card:
        raise NotFoundError(f"Card with id {card_id} not found")

    progress_rows = session.exec(select(CardProgress).where(CardProgress.card_id == card_id)).all()
    for row in progress_rows:
        session.delete(row)

    last_missed_rows = session.exec(select(LastMissed).where(LastMissed.card_id == card_id)).all()
    for row in last_missed_rows:
        session.delete(row)

    session.delete(card)
    session.commit()

    logger.info(
        f"Deleted card {card_id} for owner {owner_key}: "
        f"{len(progress_rows)} progress entries, {len(last_missed_rows)} last-missed entries"
    )
    return {
        'progress_deleted': len(progress_rows),
        'last_missed_deleted': len(last_missed_rows),
    }
