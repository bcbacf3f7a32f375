import pytest

from kadi.models.enums import CardType

pytestmark = pytest.mark.integration

OWNER = 'owner-1'


def test_overview(client, make_card):
    make_card(front='a', level=0)
    make_card(front='b', level=5)
    make_card(front='c', level=2, card_type=CardType.SENTENCE)
    client.post('/api/v1/learn/sessions', json={
        'owner_key': OWNER, 'mode': 'LEITNER', 'total_count': 4, 'correct_count': 3, 'wrong_card_ids': ['x'],
    })
    client.post('/api/v1/learn/sessions', json={
        'owner_key': OWNER, 'mode': 'DRILL', 'total_count': 6, 'correct_count': 2, 'wrong_card_ids': None,
    })

    r = client.get('/api/v1/stats/overview', params={'owner_key': OWNER})
    assert r.status_code == 200
    data = r.json()

    assert data['totals'] == {'all': 3, 'vocab': 2, 'sentence': 1}
    assert data['by_level'] == {'1': 1, '2': 0, '3': 1, '4': 0, '5': 0, '6': 1}
    assert data['today'] == {'reviewed': 10, 'correct': 5, 'wrong': 5}
    assert len(data['history']) == 7
    assert data['history'][-1]['sessions'] == 2
    assert data['averages']['accuracy'] == pytest.approx(0.5)
    assert data['averages']['avg_wrong_per_session'] == pytest.approx(2.5)
    assert data['averages']['avg_cards_per_session'] == pytest.approx(5.0)


def test_overview_by_type(client, make_card):
    make_card(front='a', level=0)
    make_card(front='c', level=2, card_type=CardType.SENTENCE)

    data = client.get('/api/v1/stats/overview', params={'owner_key': OWNER, 'type': 'sentence'}).json()
    assert data['totals'] == {'all': 1, 'vocab': 0, 'sentence': 1}
    assert data['by_level']['3'] == 1
    assert sum(data['by_level'].values()) == 1


def test_overview_for_new_owner(client):
    data = client.get('/api/v1/stats/overview', params={'owner_key': 'nobody'}).json()
    assert data['totals']['all'] == 0
    assert data['averages'] == {'accuracy': 0.0, 'avg_wrong_per_session': 0.0, 'avg_cards_per_session': 0.0}
