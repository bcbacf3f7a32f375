import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from kadi.core.exceptions import StoreError
from kadi.models.enums import DrillSource, LearnMode, TrainerStatus
from kadi.schemas.trainer import GradeResult
from kadi.services.leitner import utc_today
from kadi.services.progress_store import ApiProgressStore
from kadi.services.trainer_session import TrainerSession

pytestmark = pytest.mark.integration

OWNER = 'owner-1'


@pytest.fixture
def api_store(client):
    return ApiProgressStore(base_url='/api/v1', http=client)


def test_leitner_session_over_http(client, api_store, make_card):
    first = make_card(front='a', level=2, due_in=-1)
    second = make_card(front='b', level=3, due_in=0)
    session = TrainerSession(api_store, OWNER, repeat_cap=0, shuffle=False)

    items = asyncio.run(session.start())
    assert [item.card_id for item in items] == [first.id, second.id]

    asyncio.run(session.on_grade(True))
    state = asyncio.run(session.on_grade(False))
    assert state.status == TrainerStatus.FINISHED

    progress = client.get('/api/v1/learn/progress', params={'owner_key': OWNER}).json()['items']
    levels = {entry['card_id']: (entry['level'], entry['due_date']) for entry in progress}
    assert levels[first.id] == (3, (utc_today() + timedelta(days=14)).isoformat())
    assert levels[second.id] == (0, (utc_today() + timedelta(days=1)).isoformat())

    missed = client.get('/api/v1/learn/last-missed', params={'owner_key': OWNER}).json()['items']
    assert [item['card_id'] for item in missed] == [second.id]

    sessions = client.get('/api/v1/learn/sessions', params={'owner_key': OWNER}).json()['items']
    assert len(sessions) == 1
    assert sessions[0]['total_count'] == 2
    assert sessions[0]['correct_count'] == 1
    assert sessions[0]['wrong_card_ids'] == [second.id]


def test_last_missed_drill_over_http(client, api_store, make_card):
    card = make_card(front='a', level=4, due_in=10)
    client.post('/api/v1/learn/last-missed', json={'owner_key': OWNER, 'card_id': card.id})
    session = TrainerSession(
        api_store, OWNER, mode=LearnMode.DRILL, drill_source=DrillSource.LAST_MISSED, shuffle=False
    )

    assert [item.card_id for item in asyncio.run(session.start())] == [card.id]
    asyncio.run(session.on_grade(True))

    assert client.get('/api/v1/learn/last-missed', params={'owner_key': OWNER}).json()['items'] == []
    entry = client.get('/api/v1/learn/progress', params={'owner_key': OWNER}).json()['items'][0]
    assert entry['level'] == 4


def test_counts_and_stats_over_http(api_store, make_card):
    make_card(front='a', level=1)
    make_card(front='b', level=1, due_in=2)

    counts = asyncio.run(api_store.count_setup(OWNER))
    assert (counts.today_due, counts.total_cards, counts.last_missed_count) == (1, 2, 0)

    entries = asyncio.run(api_store.fetch_progress_entries(OWNER))
    assert sorted(entry.level for entry in entries) == [1, 1]

    types = asyncio.run(api_store.fetch_card_types(OWNER))
    assert len(types) == 2


def test_error_detail_becomes_store_error(api_store, db):
    result = GradeResult(
        card_id='missing',
        correct=True,
        previous_level=0,
        new_level=1,
        due_date=utc_today() + timedelta(days=2),
        graded_at=datetime.now(timezone.utc),
    )
    with pytest.raises(StoreError) as exc_info:
        asyncio.run(api_store.upsert_grade(OWNER, result))
    assert str(exc_info.value) == 'Card with id missing not found'


def test_grade_failure_over_http_keeps_card(client, api_store, make_card):
    card_id = make_card(front='a').id
    session = TrainerSession(api_store, OWNER, shuffle=False)
    asyncio.run(session.start())
    client.delete(f'/api/v1/cards/{card_id}', params={'owner_key': OWNER})

    with pytest.raises(StoreError):
        asyncio.run(session.on_grade(True))

    assert session.status == TrainerStatus.ERROR
    assert session.error == f'Card with id {card_id} not found'
    assert session.current_item.card_id == card_id
