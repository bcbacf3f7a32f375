import asyncio
import random
from datetime import date, datetime, timedelta, timezone

import pytest

from kadi.core.exceptions import SessionStateError, StoreError
from kadi.models.enums import CardType, DrillSource, LearnMode, TrainerStatus
from kadi.services.leitner import utc_today
from kadi.services.trainer_session import TrainerSession

OWNER = 'owner-1'
NOW = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)


def _start(session, card_type=None):
    return asyncio.run(session.start(card_type))


def _grade(session, correct, now=NOW):
    return asyncio.run(session.on_grade(correct, now=now))


def test_correct_answer_promotes_and_finishes(memory_store):
    memory_store.add_card(OWNER, 'c1', level=2)
    session = TrainerSession(memory_store, OWNER, shuffle=False)
    _start(session)
    assert session.status == TrainerStatus.IN_SESSION
    assert session.progress == (1, 1)

    state = _grade(session, True)

    assert state.status == TrainerStatus.FINISHED
    assert state.items == []
    assert memory_store.progress[(OWNER, 'c1')] == {'level': 3, 'due_date': date(2024, 3, 24)}
    assert len(memory_store.summaries) == 1
    summary = memory_store.summaries[0][1]
    assert (summary.total_count, summary.correct_count, summary.wrong_card_ids) == (1, 1, [])


def test_wrong_answer_resets_and_marks_last_missed(memory_store):
    memory_store.add_card(OWNER, 'c1', level=3)
    session = TrainerSession(memory_store, OWNER, repeat_cap=0, shuffle=False)
    _start(session)

    _grade(session, False)

    assert memory_store.progress[(OWNER, 'c1')] == {'level': 0, 'due_date': date(2024, 3, 11)}
    assert (OWNER, 'c1') in memory_store.last_missed
    names = [name for name, _ in memory_store.calls]
    assert names.index('upsert_last_missed') < names.index('upsert_grade')
    summary = memory_store.summaries[0][1]
    assert (summary.total_count, summary.correct_count, summary.wrong_card_ids) == (1, 0, ['c1'])


def test_missed_card_is_requeued_up_to_cap(memory_store):
    memory_store.add_card(OWNER, 'c1', level=4)
    session = TrainerSession(memory_store, OWNER, repeat_cap=2, shuffle=False)
    _start(session)

    state = _grade(session, False)
    assert state.status == TrainerStatus.IN_SESSION
    assert session.current_item.card_id == 'c1'
    assert session.current_item.level == 0

    _grade(session, False)
    assert session.status == TrainerStatus.IN_SESSION

    state = _grade(session, False)
    assert state.status == TrainerStatus.FINISHED
    assert [name for name, _ in memory_store.calls].count('upsert_grade') == 3
    summary = memory_store.summaries[0][1]
    assert (summary.total_count, summary.correct_count, summary.wrong_card_ids) == (1, 0, ['c1'])


def test_requeued_card_answered_correctly_later(memory_store):
    memory_store.add_card(OWNER, 'c1', level=2)
    memory_store.add_card(OWNER, 'c2', level=0)
    session = TrainerSession(memory_store, OWNER, repeat_cap=2, shuffle=False)
    _start(session)

    _grade(session, False)  # c1
    assert session.current_item.card_id == 'c2'
    _grade(session, True)  # c2
    assert session.current_item.card_id == 'c1'
    assert session.progress == (3, 3)
    state = _grade(session, True)  # c1 again, from level 0

    assert state.status == TrainerStatus.FINISHED
    assert memory_store.progress[(OWNER, 'c1')] == {'level': 1, 'due_date': date(2024, 3, 12)}
    assert memory_store.progress[(OWNER, 'c2')] == {'level': 1, 'due_date': date(2024, 3, 12)}
    summary = memory_store.summaries[0][1]
    assert (summary.total_count, summary.correct_count, summary.wrong_card_ids) == (2, 1, ['c1'])


def test_only_due_cards_are_loaded(memory_store):
    memory_store.add_card(OWNER, 'due', due_date=utc_today() - timedelta(days=3))
    memory_store.add_card(OWNER, 'later', due_date=utc_today() + timedelta(days=3))
    session = TrainerSession(memory_store, OWNER, shuffle=False)
    items = _start(session)
    assert [item.card_id for item in items] == ['due']


def test_nothing_due_finishes_immediately(memory_store):
    memory_store.add_card(OWNER, 'later', due_date=utc_today() + timedelta(days=1))
    session = TrainerSession(memory_store, OWNER)
    assert _start(session) == []
    assert session.status == TrainerStatus.FINISHED
    assert session.current_item is None


def test_card_type_filter(memory_store):
    memory_store.add_card(OWNER, 'v1')
    memory_store.add_card(OWNER, 's1', card_type=CardType.SENTENCE)
    session = TrainerSession(memory_store, OWNER, shuffle=False)
    items = _start(session, CardType.SENTENCE)
    assert [item.card_id for item in items] == ['s1']


def test_shuffle_keeps_all_cards(memory_store):
    for card_id in ('a', 'b', 'c', 'd'):
        memory_store.add_card(OWNER, card_id)
    session = TrainerSession(memory_store, OWNER, rng=random.Random(7))
    items = _start(session)
    assert sorted(item.card_id for item in items) == ['a', 'b', 'c', 'd']


def test_fetch_failure_sets_error_status(memory_store):
    memory_store.add_card(OWNER, 'c1')
    memory_store.fail_on.add('fetch_due_cards')
    session = TrainerSession(memory_store, OWNER)

    assert _start(session) == []
    assert session.status == TrainerStatus.ERROR
    assert session.error == 'fetch_due_cards failed'
    assert session.current_item is None


def test_persist_failure_keeps_current_card(memory_store):
    memory_store.add_card(OWNER, 'c1', level=1)
    memory_store.add_card(OWNER, 'c2', level=1)
    memory_store.fail_on.add('upsert_grade')
    session = TrainerSession(memory_store, OWNER, shuffle=False)
    _start(session)

    with pytest.raises(StoreError):
        _grade(session, True)

    assert session.status == TrainerStatus.ERROR
    assert session.current_item.card_id == 'c1'
    assert session.state.last_result.card_id == 'c1'
    assert session.answered == set()
    assert memory_store.progress[(OWNER, 'c1')]['level'] == 1

    # Retry once the store is back
    memory_store.fail_on.clear()
    _grade(session, True)
    assert session.status == TrainerStatus.IN_SESSION
    assert session.current_item.card_id == 'c2'
    assert session.error is None
    assert memory_store.progress[(OWNER, 'c1')]['level'] == 2


def test_grade_without_card_raises(memory_store):
    session = TrainerSession(memory_store, OWNER)
    with pytest.raises(SessionStateError):
        _grade(session, True)


def test_summary_failure_does_not_fail_the_session(memory_store):
    memory_store.add_card(OWNER, 'c1')
    memory_store.fail_on.add('append_session_summary')
    session = TrainerSession(memory_store, OWNER)
    _start(session)

    state = _grade(session, True)

    assert state.status == TrainerStatus.FINISHED
    assert memory_store.summaries == []


def test_summary_is_saved_once(memory_store):
    memory_store.add_card(OWNER, 'c1')
    session = TrainerSession(memory_store, OWNER)
    _start(session)
    _grade(session, True)
    asyncio.run(session.end_session())
    assert len(memory_store.summaries) == 1


def test_end_session_early_records_answered_cards(memory_store):
    for card_id in ('c1', 'c2', 'c3'):
        memory_store.add_card(OWNER, card_id)
    session = TrainerSession(memory_store, OWNER, shuffle=False)
    _start(session)
    _grade(session, True)
    _grade(session, False)

    state = asyncio.run(session.end_session())

    assert state.status == TrainerStatus.FINISHED
    assert state.items == []
    summary = memory_store.summaries[0][1]
    assert (summary.total_count, summary.correct_count, summary.wrong_card_ids) == (2, 1, ['c2'])


def test_drill_does_not_touch_the_schedule(memory_store):
    memory_store.add_card(OWNER, 'c1', level=3, due_date=utc_today() + timedelta(days=10))
    session = TrainerSession(memory_store, OWNER, mode=LearnMode.DRILL, repeat_cap=0, shuffle=False)
    items = _start(session)
    assert [item.card_id for item in items] == ['c1']

    _grade(session, False)

    assert memory_store.progress[(OWNER, 'c1')]['level'] == 3
    assert 'upsert_grade' not in [name for name, _ in memory_store.calls]
    assert (OWNER, 'c1') in memory_store.last_missed
    assert memory_store.summaries[0][1].mode == LearnMode.DRILL


def test_last_missed_drill_removes_known_cards(memory_store):
    memory_store.add_card(OWNER, 'c1')
    memory_store.add_card(OWNER, 'c2')
    memory_store.add_card(OWNER, 'c3')
    memory_store.last_missed = {(OWNER, 'c1'), (OWNER, 'c2')}
    session = TrainerSession(
        memory_store, OWNER,
        mode=LearnMode.DRILL,
        drill_source=DrillSource.LAST_MISSED,
        repeat_cap=0,
        shuffle=False
    )
    items = _start(session)
    assert [item.card_id for item in items] == ['c1', 'c2']

    _grade(session, True)
    _grade(session, False)

    assert memory_store.last_missed == {(OWNER, 'c2')}
    assert session.status == TrainerStatus.FINISHED


def test_last_missed_failure_keeps_current_card(memory_store):
    memory_store.add_card(OWNER, 'c1', level=3)
    memory_store.add_card(OWNER, 'c2', level=1)
    memory_store.fail_on.add('upsert_last_missed')
    session = TrainerSession(memory_store, OWNER, repeat_cap=0, shuffle=False)
    _start(session)

    with pytest.raises(StoreError):
        _grade(session, False)

    assert session.status == TrainerStatus.ERROR
    assert session.current_item.card_id == 'c1'
    assert 'upsert_grade' not in [name for name, _ in memory_store.calls]
    assert memory_store.progress[(OWNER, 'c1')]['level'] == 3

    memory_store.fail_on.clear()
    _grade(session, False)
    assert session.status == TrainerStatus.IN_SESSION
    assert session.current_item.card_id == 'c2'
    assert (OWNER, 'c1') in memory_store.last_missed
    assert memory_store.progress[(OWNER, 'c1')]['level'] == 0


def test_end_session_before_start_records_nothing(memory_store):
    session = TrainerSession(memory_store, OWNER)
    state = asyncio.run(session.end_session())
    assert state.status == TrainerStatus.IDLE
    assert memory_store.summaries == []


def test_end_session_after_failed_load_records_nothing(memory_store):
    memory_store.add_card(OWNER, 'c1')
    memory_store.fail_on.add('fetch_due_cards')
    session = TrainerSession(memory_store, OWNER)
    _start(session)

    state = asyncio.run(session.end_session())

    assert state.status == TrainerStatus.ERROR
    assert 'append_session_summary' not in [name for name, _ in memory_store.calls]


def test_huge_level_from_store_is_clamped(memory_store):
    class RawStore(type(memory_store)):
        async def fetch_due_cards(self, owner_key, card_type=None):
            return [{'id': 'c1', 'level': 10 ** 400, 'front': 'Habari', 'back': 'Hallo'}]

    store = RawStore()
    session = TrainerSession(store, OWNER, shuffle=False)

    items = _start(session)

    assert session.status == TrainerStatus.IN_SESSION
    assert items[0].level == 5
    _grade(session, True)
    assert store.progress[(OWNER, 'c1')]['level'] == 5
