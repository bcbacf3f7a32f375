import os
from datetime import timedelta

import pytest

# Tests always run against an in-memory database
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('ENVIRONMENT', 'development')

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel, Session  # noqa: E402

from kadi import models  # noqa: E402,F401
from kadi.core.database import engine  # noqa: E402
from kadi.main import app  # noqa: E402
from kadi.models.card import Card  # noqa: E402
from kadi.models.card_progress import CardProgress  # noqa: E402
from kadi.models.enums import CardType  # noqa: E402
from kadi.services.leitner import utc_today  # noqa: E402
from tests.fixtures.memory_store import InMemoryProgressStore  # noqa: E402


@pytest.fixture
def db():
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(db) as s:
        yield s


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def owner_key():
    return 'owner-1'


@pytest.fixture
def make_card(session, owner_key):
    """Insert a card with a schedule entry `due_in` days from today (UTC)."""
    def _make(front='Habari', back='Hallo', level=0, due_in=0, card_type=CardType.VOCAB, owner=None,
              with_progress=True):
        owner = owner or owner_key
        card = Card(owner_key=owner, type=card_type, front_text=front, back_text=back)
        session.add(card)
        session.flush()
        if with_progress:
            session.add(CardProgress(
                owner_key=owner,
                card_id=card.id,
                level=level,
                due_date=utc_today() + timedelta(days=due_in),
            ))
        session.commit()
        session.refresh(card)
        return card
    return _make


@pytest.fixture
def memory_store():
    return InMemoryProgressStore()
