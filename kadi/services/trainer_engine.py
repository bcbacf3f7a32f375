"""
Trainer session engine.

Pure state transitions over an in-memory queue of card snapshots. No I/O:
the orchestrator in `trainer_session` persists grades between `grade_*` and
`next_card`, so a failed save never leaves the queue half-advanced.
"""
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from kadi.models.enums import CardType, TrainerStatus
from kadi.schemas.trainer import CardSnapshot, GradeOutcome, TrainerState
from kadi.services.leitner import clamp_level, utc_today

logger = logging.getLogger(__name__)

# Accepted key names per field, in priority order
_ID_KEYS = ("card_id", "cardId", "id")
_LEVEL_KEYS = ("level",)
_DUE_KEYS = ("due_date", "dueDate")
_FRONT_KEYS = ("front_text", "front", "swahili_text", "swahili", "sw")
_BACK_KEYS = ("back_text", "back", "german_text", "german", "de")
_TYPE_KEYS = ("type", "card_type", "cardType")
_IMAGE_KEYS = ("image_path", "imagePath", "image")
_AUDIO_KEYS = ("audio_path", "audioPath", "audio")


def _first(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def resolve_card_id(item: Any) -> str:
    """Card ID of a snapshot or raw mapping, '' when none can be found."""
    if item is None:
        return ""
    if isinstance(item, CardSnapshot):
        return item.card_id.strip()
    if isinstance(item, Mapping):
        value = _first(item, _ID_KEYS)
        return "" if value is None else str(value).strip()
    return ""


def normalize_snapshot(raw: Any) -> Optional[CardSnapshot]:
    """
    Map an external card shape to a CardSnapshot.

    External collaborators disagree on key names (cardId / card_id / id,
    german / german_text / de, ...). This is the only place that knows about
    them. Returns None when no card ID can be resolved.
    """
    if isinstance(raw, CardSnapshot):
        return raw if raw.card_id.strip() else None
    if not isinstance(raw, Mapping):
        return None

    card_id = resolve_card_id(raw)
    if not card_id:
        return None

    due_value = _first(raw, _DUE_KEYS)
    due_date = None
    if isinstance(due_value, datetime):
        due_date = utc_today(due_value)
    elif isinstance(due_value, date):
        due_date = due_value
    elif isinstance(due_value, str) and due_value:
        try:
            due_date = date.fromisoformat(due_value[:10])
        except ValueError:
            logger.warning(f"Ignoring unparseable due date {due_value!r} for card {card_id}")

    type_value = _first(raw, _TYPE_KEYS)
    try:
        card_type = CardType(type_value) if type_value else None
    except ValueError:
        card_type = None

    try:
        return CardSnapshot(
            card_id=card_id,
            level=clamp_level(_first(raw, _LEVEL_KEYS)),
            due_date=due_date,
            front_text=str(_first(raw, _FRONT_KEYS) or ""),
            back_text=str(_first(raw, _BACK_KEYS) or ""),
            type=card_type,
            image_path=_first(raw, _IMAGE_KEYS),
            audio_path=_first(raw, _AUDIO_KEYS),
        )
    except PydanticValidationError as e:
        logger.warning(f"Dropping malformed card snapshot {card_id}: {e}")
        return None


def normalize_snapshots(raw_items: Iterable[Any]) -> List[CardSnapshot]:
    """Normalize a list of external shapes, dropping items without an ID."""
    snapshots = []
    dropped = 0
    for raw in raw_items or []:
        snapshot = normalize_snapshot(raw)
        if snapshot is None:
            dropped += 1
            continue
        snapshots.append(snapshot)
    if dropped:
        logger.warning(f"Dropped {dropped} card snapshot(s) without a resolvable ID")
    return snapshots


def init_session(items: List[CardSnapshot]) -> TrainerState:
    """Initial state; an empty queue is immediately finished."""
    items = list(items)
    return TrainerState(
        items=items,
        index=0,
        reveal=False,
        status=TrainerStatus.IN_SESSION if items else TrainerStatus.FINISHED,
    )


def reveal(state: TrainerState) -> TrainerState:
    return state.model_copy(update={"reveal": True})


def current_item(state: TrainerState) -> Optional[CardSnapshot]:
    if 0 <= state.index < len(state.items):
        return state.items[state.index]
    return None


def _grade(state: TrainerState, correct: bool) -> TrainerState:
    card_id = resolve_card_id(current_item(state))
    last_result = GradeOutcome(correct=correct, card_id=card_id) if card_id else None
    return state.model_copy(update={"last_result": last_result})


def grade_success(state: TrainerState) -> TrainerState:
    """Record a correct answer for the current card. Does not advance."""
    return _grade(state, True)


def grade_fail(state: TrainerState) -> TrainerState:
    """Record a wrong answer for the current card. Does not advance."""
    return _grade(state, False)


def find_next_unanswered_index(
    items: List[CardSnapshot],
    answered: Set[str],
    start: int,
    stop: Optional[int] = None
) -> int:
    """First index in [start, stop) whose card is not answered, -1 if none."""
    if stop is None:
        stop = len(items)
    for i in range(max(start, 0), min(stop, len(items))):
        card_id = resolve_card_id(items[i])
        if not card_id or card_id not in answered:
            return i
    return -1


def next_card(state: TrainerState, answered: Set[str]) -> TrainerState:
    """
    Advance to the next unanswered card.

    Scans forward from the card after the current one, then wraps around to
    the start up to (not including) the current position. When nothing is
    left the session is finished and the queue cleared.
    """
    next_index = find_next_unanswered_index(state.items, answered, state.index + 1)
    if next_index == -1:
        next_index = find_next_unanswered_index(state.items, answered, 0, state.index)

    if next_index == -1:
        return state.model_copy(update={
            "items": [],
            "index": 0,
            "reveal": False,
            "status": TrainerStatus.FINISHED,
        })

    return state.model_copy(update={
        "index": next_index,
        "reveal": False,
    })


def requeue(state: TrainerState, item: CardSnapshot) -> TrainerState:
    """Append a card to the end of the queue for another attempt."""
    return state.model_copy(update={"items": [*state.items, item]})
