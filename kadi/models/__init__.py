"""
Models package - imports all models so they register with SQLModel.
"""
from kadi.models.enums import (
    CardType,
    LearnMode,
    DrillSource,
    TrainerStatus,
    LastMissedAction,
)
from kadi.models.card import Card
from kadi.models.card_progress import CardProgress
from kadi.models.last_missed import LastMissed
from kadi.models.learn_session import LearnSession

__all__ = [
    'CardType',
    'LearnMode',
    'DrillSource',
    'TrainerStatus',
    'LastMissedAction',
    'Card',
    'CardProgress',
    'LastMissed',
    'LearnSession',
]
