"""
Unit tests for Flask web application.
"""
import os

import pytest
import yaml

from app import _slugify


PETS = [
    {'id': 'cat', 'title': 'Cat', 'image_url': 'cat.png'},
    {'id': 'dog', 'title': 'Dog'},
    {'id': 'frog', 'title': 'Frog'},
    {'id': 'owl', 'title': 'Owl'},
]


def create_contest(client, title='Best Pets', items=PETS, **extra):
    response = client.post('/api/contests', json={'title': title, 'items': items, **extra})
    assert response.status_code == 201
    return response.get_json()


def start_play(client, contest_id, **options):
    response = client.post(f'/api/contests/{contest_id}/play', json=options)
    assert response.status_code == 201
    return response.get_json()


def pick_first(client, state):
    winner_id = state['current_match']['item_a']['id']
    response = client.post(f"/api/play/{state['session_id']}/select", json={'winner_id': winner_id})
    assert response.status_code == 200
    return response.get_json()


def play_to_the_end(client, state):
    while not state['completed']:
        state = pick_first(client, state)
    return state


class TestSlugify:
    def test_slugify(self):
        assert _slugify('Best Pets!') == 'best-pets'
        assert _slugify('  --  ') == 'contest'


class TestContestRoutes:
    """Tests for publishing and reading contests."""

    def test_create_contest(self, client, temp_data_dir):
        contest = create_contest(client, category='pets')
        assert contest['id'].startswith('best-pets-')
        assert contest['category'] == 'pets'
        assert contest['items'][0]['image_ref'] == 'cat.png'

        response = client.get(f"/api/contests/{contest['id']}")
        assert response.status_code == 200
        assert response.get_json()['title'] == 'Best Pets'

    def test_contest_saved_as_yaml(self, client, temp_data_dir):
        contest = create_contest(client)
        with open(os.path.join(temp_data_dir, 'contests.yaml')) as f:
            data = yaml.safe_load(f)
        assert data['contests'][0]['id'] == contest['id']

    def test_missing_title(self, client, temp_data_dir):
        response = client.post('/api/contests', json={'items': PETS})
        assert response.status_code == 400
        assert 'error' in response.get_json()

    def test_too_few_items(self, client, temp_data_dir):
        response = client.post('/api/contests', json={'title': 'Lonely', 'items': PETS[:1]})
        assert response.status_code == 400

    def test_reserved_title_rejected(self, client, temp_data_dir):
        items = PETS + [{'id': 'x', 'title': 'BYE'}]
        response = client.post('/api/contests', json={'title': 'Sneaky', 'items': items})
        assert response.status_code == 400

    def test_unknown_contest(self, client, temp_data_dir):
        assert client.get('/api/contests/nope').status_code == 404
        assert client.get('/api/contests/nope/sizes').status_code == 404
        assert client.post('/api/contests/nope/play', json={}).status_code == 404
        assert client.get('/api/contests/nope/stats').status_code == 404

    def test_sizes(self, client, temp_data_dir):
        contest = create_contest(client)
        response = client.get(f"/api/contests/{contest['id']}/sizes")
        assert response.get_json()['sizes'] == [{'size': 4, 'byes': 0, 'name': 'semifinal'}]


class TestPlayRoutes:
    """Tests for playing a bracket through the API."""

    def test_start(self, client, temp_data_dir):
        contest = create_contest(client)
        state = start_play(client, contest['id'], seed=3)
        assert state['tournament_id'] == contest['id']
        assert not state['completed']
        assert state['current_match']['round_name'] == 'semifinal'
        assert state['progress']['total_matches'] == 3
        assert not state['can_undo']

        response = client.get(f"/api/play/{state['session_id']}")
        assert response.get_json()['current_match'] == state['current_match']

    def test_unsupported_size(self, client, temp_data_dir):
        contest = create_contest(client)
        response = client.post(f"/api/contests/{contest['id']}/play", json={'size': 6})
        assert response.status_code == 400

    def test_play_to_champion(self, client, temp_data_dir):
        contest = create_contest(client)
        state = play_to_the_end(client, start_play(client, contest['id'], seed=1))

        assert state['completed']
        assert state['champion'] is not None
        assert state['current_match'] is None
        assert state['progress']['percentage'] == 100

        champion_id = state['champion']['id']
        stats = client.get(f"/api/contests/{contest['id']}/stats").get_json()
        top = stats['items'][0]
        assert top['item_id'] == champion_id
        assert top['wins'] == 2
        assert top['championship_wins'] == 1
        assert sum(row['appearances'] for row in stats['items']) == 6

        assert client.get(f"/api/contests/{contest['id']}").get_json()['participants'] == 1
        with open(os.path.join(temp_data_dir, 'matches.yaml')) as f:
            assert len(yaml.safe_load(f)['matches']) == 3

    def test_byes_skipped(self, client, temp_data_dir):
        contest = create_contest(client, items=PETS[:3])
        state = start_play(client, contest['id'], seed=2)
        assert state['progress']['completed_matches'] == 1
        decisions = 0
        while not state['completed']:
            state = pick_first(client, state)
            decisions += 1
        assert decisions == 2

    def test_invalid_winner(self, client, temp_data_dir):
        contest = create_contest(client)
        state = start_play(client, contest['id'], seed=1)
        url = f"/api/play/{state['session_id']}/select"
        assert client.post(url, json={}).status_code == 400
        assert client.post(url, json={'winner_id': 'nobody'}).status_code == 400

        match = state['current_match']
        playing = {match['item_a']['id'], match['item_b']['id']}
        bystander = next(i['id'] for i in PETS if i['id'] not in playing)
        assert client.post(url, json={'winner_id': bystander}).status_code == 400

    def test_unknown_session(self, client, temp_data_dir):
        assert client.get('/api/play/abc123').status_code == 404
        assert client.post('/api/play/abc123/select', json={'winner_id': 'cat'}).status_code == 404
        assert client.post('/api/play/abc123/undo').status_code == 404


class TestUndoRoute:
    """Tests for taking back picks."""

    def test_nothing_to_undo(self, client, temp_data_dir):
        contest = create_contest(client)
        state = start_play(client, contest['id'], seed=1)
        response = client.post(f"/api/play/{state['session_id']}/undo")
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Nothing to undo'

    def test_undo_restores_match(self, client, temp_data_dir):
        contest = create_contest(client)
        state = start_play(client, contest['id'], seed=1)
        after = pick_first(client, state)
        assert after['can_undo']

        response = client.post(f"/api/play/{state['session_id']}/undo")
        assert response.status_code == 200
        undone = response.get_json()
        assert undone['current_match'] == state['current_match']
        assert undone['progress']['completed_matches'] == 0

    def test_replaying_final_does_not_double_count(self, client, temp_data_dir):
        contest = create_contest(client)
        state = play_to_the_end(client, start_play(client, contest['id'], seed=1))
        session_id = state['session_id']

        undone = client.post(f'/api/play/{session_id}/undo').get_json()
        assert not undone['completed']
        play_to_the_end(client, undone)

        assert client.get(f"/api/contests/{contest['id']}").get_json()['participants'] == 1
        stats = client.get(f"/api/contests/{contest['id']}/stats").get_json()
        assert sum(row['championship_wins'] for row in stats['items']) == 1
        assert sum(row['appearances'] for row in stats['items']) == 6

    def test_counters_wait_for_finished_bracket(self, client, temp_data_dir):
        contest = create_contest(client)
        pick_first(client, start_play(client, contest['id'], seed=1))
        stats = client.get(f"/api/contests/{contest['id']}/stats").get_json()
        assert sum(row['appearances'] for row in stats['items']) == 0
        assert not os.path.exists(os.path.join(temp_data_dir, 'matches.yaml'))

    def test_counters_match_log_after_changed_pick(self, client, temp_data_dir):
        """Undo a pick, choose the other side, and the counters follow the new choice."""
        contest = create_contest(client)
        state = start_play(client, contest['id'], seed=1)
        session_id = state['session_id']
        first = state['current_match']

        url = f'/api/play/{session_id}/select'
        client.post(url, json={'winner_id': first['item_b']['id']})
        undone = client.post(f'/api/play/{session_id}/undo').get_json()
        assert undone['current_match'] == first
        play_to_the_end(client, undone)

        with open(os.path.join(temp_data_dir, 'matches.yaml')) as f:
            records = yaml.safe_load(f)['matches']
        expected = {item['id']: {'wins': 0, 'losses': 0} for item in PETS}
        for record in records:
            loser = record['item_b'] if record['winner'] == record['item_a'] else record['item_a']
            expected[record['winner']]['wins'] += 1
            expected[loser]['losses'] += 1

        assert next(r for r in records if r['round'] == 1 and r['match_number'] == 1)['winner'] == \
            first['item_a']['id']
        stats = client.get(f"/api/contests/{contest['id']}/stats").get_json()
        actual = {row['item_id']: {'wins': row['wins'], 'losses': row['losses']}
                  for row in stats['items']}
        assert actual == expected


class TestVoteRoute:
    """Tests for single votes."""

    def test_vote(self, client, temp_data_dir):
        contest = create_contest(client)
        url = f"/api/contests/{contest['id']}/vote"
        response = client.post(url, json={'winner_id': 'cat', 'loser_id': 'dog'})
        assert response.get_json()['success']

        stats = client.get(f"/api/contests/{contest['id']}/stats").get_json()
        assert stats['items'][0]['item_id'] == 'cat'
        assert stats['items'][0]['win_rate'] == 1.0
        assert stats['total_items'] == 4

    @pytest.mark.parametrize('payload', [
        {'winner_id': 'cat', 'loser_id': 'cat'},
        {'winner_id': 'cat', 'loser_id': 'unicorn'},
        {'winner_id': 'cat'},
    ])
    def test_invalid_vote(self, client, temp_data_dir, payload):
        contest = create_contest(client)
        response = client.post(f"/api/contests/{contest['id']}/vote", json=payload)
        assert response.status_code == 400

    def test_vote_unknown_contest(self, client, temp_data_dir):
        response = client.post('/api/contests/nope/vote', json={'winner_id': 'a', 'loser_id': 'b'})
        assert response.status_code == 404


class TestRankingRoutes:
    """Tests for the global ranking endpoints."""

    def test_empty_rankings(self, client, temp_data_dir):
        data = client.get('/api/rankings/global').get_json()
        assert data['rankings'] == []
        assert data['last_updated'] is None

    def test_refresh_merges_contests(self, client, temp_data_dir):
        first = create_contest(client, title='Pets', category='pets')
        second = create_contest(client, title='Memes', category='memes',
                                items=[{'id': 'c', 'title': ' cat '}, {'id': 'p', 'title': 'Pepe'}])
        create_contest(client, title='Private', is_public=False,
                       items=[{'id': 'c', 'title': 'Cat'}, {'id': 'd', 'title': 'Doge'}])
        client.post(f"/api/contests/{first['id']}/vote", json={'winner_id': 'cat', 'loser_id': 'dog'})
        client.post(f"/api/contests/{second['id']}/vote", json={'winner_id': 'c', 'loser_id': 'p'})

        response = client.post('/api/rankings/global')
        assert response.get_json()['updated_items'] == 5

        data = client.get('/api/rankings/global').get_json()
        assert {row['key'] for row in data['rankings']} == {'cat', 'dog', 'frog', 'owl', 'pepe'}
        top = data['rankings'][0]
        assert top['key'] == 'cat'
        assert top['tournament_count'] == 2
        assert top['total_wins'] == 2
        assert top['categories'] == ['memes', 'pets']
        assert data['last_updated'] is not None

    def test_filters(self, client, temp_data_dir):
        create_contest(client, title='Pets', category='pets')
        create_contest(client, title='Memes', category='memes',
                       items=[{'id': 'p', 'title': 'Pepe'}, {'id': 'd', 'title': 'Doge'}])
        client.post('/api/rankings/global')

        memes = client.get('/api/rankings/global?category=memes').get_json()
        assert {row['key'] for row in memes['rankings']} == {'pepe', 'doge'}
        limited = client.get('/api/rankings/global?limit=2').get_json()
        assert limited['total_items'] == 2

    def test_bad_limit(self, client, temp_data_dir):
        assert client.get('/api/rankings/global?limit=many').status_code == 400
