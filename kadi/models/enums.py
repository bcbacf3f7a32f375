"""
Model enums.
"""
from enum import Enum


class CardType(str, Enum):
    """Kind of bilingual card."""
    VOCAB = "vocab"
    SENTENCE = "sentence"


class LearnMode(str, Enum):
    """How a learning session is scheduled."""
    LEITNER = "LEITNER"  # Due cards, grades update the schedule
    DRILL = "DRILL"  # Free practice, schedule untouched


class DrillSource(str, Enum):
    """Which cards a drill session is built from."""
    ALL = "ALL"
    LAST_MISSED = "LAST_MISSED"


class TrainerStatus(str, Enum):
    """Lifecycle of a trainer session."""
    IDLE = "idle"
    LOADING = "loading"
    IN_SESSION = "in_session"
    FINISHED = "finished"
    ERROR = "error"


class LastMissedAction(str, Enum):
    """Membership change for the last-missed set."""
    ADD = "add"
    REMOVE = "remove"
