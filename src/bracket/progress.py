"""
Read-only progress information derived from a bracket.
"""
from .models import Tournament

ROUND_NAMES = {
    1: 'final',
    2: 'semifinal',
    3: 'quarterfinal',
    4: 'round of 16',
    5: 'round of 32',
    6: 'round of 64',
}


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the name of a round from how many rounds remain including it."""
    remaining = total_rounds - round_number + 1
    if remaining in ROUND_NAMES:
        return ROUND_NAMES[remaining]
    return f'round of {2 ** remaining}'


def count_completed_matches(tournament: Tournament) -> int:
    return sum(1 for m in tournament.matches if m.completed)


def total_matches(tournament: Tournament) -> int:
    """Matches in a fully played single elimination bracket, byes included."""
    return max(tournament.bracket_size - 1, 0)


def get_progress(tournament: Tournament) -> float:
    """Completion percentage (0-100)."""
    total = total_matches(tournament)
    if total == 0:
        return 0.0
    return count_completed_matches(tournament) / total * 100


def get_progress_summary(tournament: Tournament) -> dict:
    return {
        'round': tournament.current_round,
        'total_rounds': tournament.total_rounds,
        'round_name': get_round_name(tournament.current_round, tournament.total_rounds),
        'completed_matches': count_completed_matches(tournament),
        'total_matches': total_matches(tournament),
        'percentage': round(get_progress(tournament), 2),
    }
