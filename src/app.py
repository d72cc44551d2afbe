"""
Flask web application for the pick-one bracket service.
"""
import os
import random
import re
import uuid

from flask import Flask, jsonify, request

from bracket.builder import get_available_sizes, start_tournament
from bracket.engine import get_current_match, play, undo_last_decision
from bracket.errors import BracketError, StorageError
from bracket.models import Contest
from bracket.pool import normalize_items
from bracket.progress import get_progress_summary, get_round_name
from bracket.rankings import RankingWeights, filter_rankings, refresh_global_rankings
from bracket.settings import load_settings
from bracket.statistics import StatisticsAggregator
from bracket.storage import (YamlCatalog, YamlCounterStore, YamlMatchLog, YamlRankingSink,
                             YamlSessionStore)

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))

# Keys kept in a session's processed set besides match ids
FINISHED_KEY = 'finished'


def _file_path(filename: str) -> str:
    """Return full path to a data file."""
    return os.path.join(DATA_DIR, filename)


def _settings() -> dict:
    return load_settings(DATA_DIR)


def _timeout() -> float:
    return _settings().get('lock_timeout', 10)


def get_catalog() -> YamlCatalog:
    return YamlCatalog(_file_path('contests.yaml'), timeout=_timeout())


def get_counter_store() -> YamlCounterStore:
    return YamlCounterStore(_file_path('counters.yaml'), timeout=_timeout())


def get_match_log() -> YamlMatchLog:
    return YamlMatchLog(_file_path('matches.yaml'), timeout=_timeout())


def get_ranking_sink() -> YamlRankingSink:
    return YamlRankingSink(_file_path('rankings.yaml'), timeout=_timeout())


def get_session_store() -> YamlSessionStore:
    return YamlSessionStore(_file_path('sessions'), timeout=_timeout())


def _slugify(name: str) -> str:
    """Convert contest title to an id-safe slug."""
    slug = name.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'[\s-]+', '-', slug)
    slug = slug.strip('-')
    return slug or 'contest'


def _match_payload(match, total_rounds):
    if match is None:
        return None
    return {
        'id': match.id,
        'round': match.round,
        'round_name': get_round_name(match.round, total_rounds),
        'match_number': match.match_number,
        'item_a': match.item_a.to_dict(),
        'item_b': match.item_b.to_dict(),
    }


def _state_payload(session_id, tournament):
    return {
        'session_id': session_id,
        'tournament_id': tournament.id,
        'title': tournament.title,
        'completed': tournament.completed,
        'champion': tournament.champion.to_dict() if tournament.champion else None,
        'current_match': _match_payload(get_current_match(tournament), tournament.total_rounds),
        'progress': get_progress_summary(tournament),
        'can_undo': any(not d.automatic for d in tournament.history),
    }


@app.errorhandler(StorageError)
def handle_storage_error(e):
    app.logger.error(f'Storage failure: {e}')
    return jsonify({'error': 'Internal server error'}), 500


@app.errorhandler(BracketError)
def handle_bracket_error(e):
    app.logger.warning(f'Rejected request: {e}')
    return jsonify({'error': str(e)}), 400


@app.route('/api/contests', methods=['POST'])
def api_create_contest():
    """API endpoint to publish a new contest from an item list."""
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'error': 'Missing title'}), 400

    items = normalize_items(data.get('items') or [])
    if len(items) < 2:
        return jsonify({'error': 'A contest needs at least 2 items'}), 400

    contest = Contest(
        id=f'{_slugify(title)}-{uuid.uuid4().hex[:6]}',
        title=title,
        items=items,
        description=data.get('description'),
        category=data.get('category') or 'misc',
        is_public=bool(data.get('is_public', True)),
    )
    get_catalog().save_contest(contest)
    app.logger.info(f'Contest created: {contest.id} ({len(items)} items)')
    return jsonify(contest.to_dict()), 201


@app.route('/api/contests/<contest_id>', methods=['GET'])
def api_get_contest(contest_id):
    contest = get_catalog().get_contest(contest_id)
    if contest is None:
        return jsonify({'error': 'Contest not found'}), 404
    return jsonify(contest.to_dict())


@app.route('/api/contests/<contest_id>/sizes', methods=['GET'])
def api_contest_sizes(contest_id):
    """API endpoint listing the bracket sizes a player can pick."""
    contest = get_catalog().get_contest(contest_id)
    if contest is None:
        return jsonify({'error': 'Contest not found'}), 404
    settings = _settings()
    sizes = get_available_sizes(len(contest.items), max_size=settings['max_bracket_size'])
    for option in sizes:
        option['name'] = get_round_name(1, option['size'].bit_length() - 1)
    return jsonify({'sizes': sizes})


@app.route('/api/contests/<contest_id>/play', methods=['POST'])
def api_start_play(contest_id):
    """API endpoint to start a bracket for a contest."""
    contest = get_catalog().get_contest(contest_id)
    if contest is None:
        return jsonify({'error': 'Contest not found'}), 404

    data = request.get_json(silent=True) or {}
    settings = _settings()
    seed = data.get('seed')
    tournament = start_tournament(
        contest.items,
        title=contest.title,
        description=contest.description,
        target_size=data.get('size'),
        tournament_id=contest.id,
        rng=random.Random(seed) if seed is not None else None,
        min_size=settings['min_bracket_size'],
        max_size=settings['max_bracket_size'],
    )
    if tournament is None:
        return jsonify({'error': 'A contest needs at least 2 items'}), 400

    sessions = get_session_store()
    session_id = sessions.new_session_id()
    sessions.save(session_id, tournament, set())
    return jsonify(_state_payload(session_id, tournament)), 201


@app.route('/api/play/<session_id>', methods=['GET'])
def api_get_play(session_id):
    loaded = get_session_store().load(session_id)
    if loaded is None:
        return jsonify({'error': 'Session not found'}), 404
    tournament, _ = loaded
    return jsonify(_state_payload(session_id, tournament))


@app.route('/api/play/<session_id>/select', methods=['POST'])
def api_select_winner(session_id):
    """API endpoint to pick the winner of the current match."""
    data = request.get_json(silent=True) or {}
    winner_id = data.get('winner_id')

    sessions = get_session_store()
    with sessions.locked(session_id):
        loaded = sessions.load(session_id)
        if loaded is None:
            return jsonify({'error': 'Session not found'}), 404
        tournament, processed = loaded
        if winner_id is None:
            return jsonify({'error': 'Missing winner_id'}), 400

        updated = play(tournament, tournament.find_item(winner_id))
        if updated is tournament:
            return jsonify({'error': 'Winner is not part of the current match'}), 400

        # Counters and the match log are written once, from the finished bracket
        if updated.completed and FINISHED_KEY not in processed:
            StatisticsAggregator(get_counter_store()).fold_matches(updated, processed)
            played = [m for m in updated.matches if m.completed and not m.is_bye_match]
            get_match_log().append(updated.id, played)
            participants = get_catalog().add_participant(updated.id)
            processed.add(FINISHED_KEY)
            app.logger.info(f'Play {session_id} finished: {updated.champion.title} '
                            f'({participants} participants)')

        sessions.save(session_id, updated, processed)
    return jsonify(_state_payload(session_id, updated))


@app.route('/api/play/<session_id>/undo', methods=['POST'])
def api_undo(session_id):
    """API endpoint to take back the last pick."""
    sessions = get_session_store()
    with sessions.locked(session_id):
        loaded = sessions.load(session_id)
        if loaded is None:
            return jsonify({'error': 'Session not found'}), 404
        tournament, processed = loaded

        updated = undo_last_decision(tournament)
        if updated is None:
            return jsonify({'error': 'Nothing to undo'}), 400
        sessions.save(session_id, updated, processed)
    return jsonify(_state_payload(session_id, updated))


@app.route('/api/contests/<contest_id>/vote', methods=['POST'])
def api_vote(contest_id):
    """API endpoint to record a single head-to-head vote."""
    contest = get_catalog().get_contest(contest_id)
    if contest is None:
        return jsonify({'error': 'Contest not found'}), 404

    data = request.get_json(silent=True) or {}
    winner_id = str(data.get('winner_id', ''))
    loser_id = str(data.get('loser_id', ''))
    item_ids = {item.id for item in contest.items}
    if winner_id == loser_id or winner_id not in item_ids or loser_id not in item_ids:
        return jsonify({'error': 'Invalid items for voting'}), 400

    StatisticsAggregator(get_counter_store()).record_vote(contest_id, winner_id, loser_id)
    return jsonify({'success': True, 'winner_id': winner_id, 'loser_id': loser_id})


@app.route('/api/contests/<contest_id>/stats', methods=['GET'])
def api_contest_stats(contest_id):
    """API endpoint for a contest's per-item statistics."""
    contest = get_catalog().get_contest(contest_id)
    if contest is None:
        return jsonify({'error': 'Contest not found'}), 404
    rows = StatisticsAggregator(get_counter_store()).tournament_statistics(contest.id, contest.items)
    return jsonify({'items': rows, 'total_items': len(rows)})


@app.route('/api/rankings/global', methods=['GET'])
def api_global_rankings():
    """API endpoint for the cross-contest ranking."""
    settings = _settings()
    try:
        limit = int(request.args.get('limit', settings['ranking_limit']))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    category = request.args.get('category') or None

    sink = get_ranking_sink()
    rankings = filter_rankings(sink.load(), category=category, limit=limit)
    return jsonify({
        'rankings': rankings,
        'total_items': len(rankings),
        'last_updated': sink.last_updated(),
    })


@app.route('/api/rankings/global', methods=['POST'])
def api_refresh_global_rankings():
    """API endpoint to rebuild the cross-contest ranking."""
    weights = RankingWeights.from_settings(_settings())
    entries = refresh_global_rankings(get_catalog(), get_counter_store(), get_ranking_sink(), weights)
    return jsonify({'success': True, 'updated_items': len(entries)})


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
