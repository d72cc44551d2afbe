"""
Match advancement and undo for single elimination brackets.

Every function here takes a Tournament and returns a Tournament (or None);
the argument is never modified. A bracket advances one match at a time:
the current match is the first incomplete match of the current round, a
winner is recorded for it, and once every match of the round is complete
the winners are paired into the next round. Bye matches are resolved by
``auto_advance_byes`` without a decision from the player.
"""
import logging
from typing import Iterable, List, Optional

from .errors import DegenerateBracketError, InvalidInputError
from .models import Decision, Item, Match, Tournament, is_bye

logger = logging.getLogger(__name__)


def get_current_match(tournament: Tournament) -> Optional[Match]:
    """First incomplete match of the current round, or None if there is none."""
    if tournament.completed:
        return None
    for match in tournament.matches:
        if match.round == tournament.current_round and not match.completed:
            return match
    return None


def _bye_winner(match: Match) -> Optional[Item]:
    """The side that advances from a bye match, or None for a regular match."""
    a_is_bye = is_bye(match.item_a)
    b_is_bye = is_bye(match.item_b)
    if a_is_bye and b_is_bye:
        raise DegenerateBracketError(f'{match.id} pairs two byes')
    if a_is_bye:
        return match.item_b
    if b_is_bye:
        return match.item_a
    return None


def _create_next_round(tournament: Tournament) -> Tournament:
    """Pair the winners of the finished round into the next one."""
    finished = tournament.round_matches(tournament.current_round)
    winners = [m.winner for m in finished if m.winner is not None and not is_bye(m.winner)]
    if len(winners) % 2 != 0:
        raise DegenerateBracketError(
            f'Round {tournament.current_round} produced an odd number of winners ({len(winners)})'
        )

    next_round = tournament.current_round + 1
    new_matches = []
    for i in range(0, len(winners), 2):
        new_matches.append(Match(round=next_round, match_number=i // 2 + 1,
                                 item_a=winners[i], item_b=winners[i + 1]))
    logger.debug('Tournament %s: round %d created with %d matches',
                 tournament.id, next_round, len(new_matches))
    return tournament.evolve(
        matches=tournament.matches + new_matches,
        current_round=next_round,
        current_match=1,
    )


def _complete_match(tournament: Tournament, match: Match, winner: Item, automatic: bool) -> Tournament:
    """Record winner for match (which must belong to the current round) and advance."""
    matches = [m.resolved(winner) if m.id == match.id else m for m in tournament.matches]
    history = tournament.history + [
        Decision(match.id, match.round, match.match_number, winner.id, automatic=automatic)
    ]
    updated = tournament.evolve(matches=matches, history=history)

    remaining = [m for m in updated.round_matches(updated.current_round) if not m.completed]
    if remaining:
        return updated.evolve(current_match=remaining[0].match_number)

    if updated.current_round == updated.total_rounds:
        logger.info('Tournament %s completed, champion %s', updated.id, winner.title)
        return updated.evolve(completed=True, champion=winner)

    return _create_next_round(updated)


def select_winner(tournament: Tournament, winner: Optional[Item]) -> Tournament:
    """
    Record winner for the current match.

    Returns the tournament unchanged when there is no current match or the
    winner is not one of its two (non-bye) items.
    """
    current = get_current_match(tournament)
    if current is None:
        logger.debug('Tournament %s has no current match', tournament.id)
        return tournament
    if winner is None or not current.has_item(winner) or is_bye(winner):
        logger.warning('Rejected winner %r for %s in tournament %s', winner, current.id, tournament.id)
        return tournament

    # Keep the bracket's own Item instance
    chosen = current.item_a if winner == current.item_a else current.item_b
    return _complete_match(tournament, current, chosen, automatic=False)


def auto_advance_byes(tournament: Tournament) -> Tournament:
    """
    Resolve every bye match of the current round in favour of its real side.

    Repeats for each round the resolution completes. Calling it again on its
    own result changes nothing.
    """
    updated = tournament
    while not updated.completed:
        pending = [m for m in updated.round_matches(updated.current_round) if not m.completed]
        bye_match = None
        bye_winner = None
        for match in pending:
            bye_winner = _bye_winner(match)
            if bye_winner is not None:
                bye_match = match
                break
        if bye_match is None:
            break
        logger.debug('Auto-advancing %s past a bye in %s', bye_winner.title, bye_match.id)
        updated = _complete_match(updated, bye_match, bye_winner, automatic=True)
    return updated


def play(tournament: Tournament, winner: Optional[Item]) -> Tournament:
    """select_winner followed by auto_advance_byes."""
    return auto_advance_byes(select_winner(tournament, winner))


def undo_last_match(tournament: Tournament) -> Optional[Tournament]:
    """
    Revert the most recently completed match.

    Matches of later rounds are discarded and the pointer moves back to the
    reverted match. Returns None when no match has been completed.
    """
    completed = [m for m in tournament.matches if m.completed]
    if not completed:
        return None

    history = tournament.history
    target = None
    if history:
        target = tournament.find_match(history[-1].match_id)
        history = history[:-1]
    if target is None or not target.completed:
        target = completed[-1]

    matches = [
        m.reverted() if m.id == target.id else m
        for m in tournament.matches
        if m.round <= target.round
    ]
    logger.debug('Tournament %s: reverted %s', tournament.id, target.id)
    return tournament.evolve(
        matches=matches,
        current_round=target.round,
        current_match=target.match_number,
        completed=False,
        champion=None,
        history=history,
    )


def undo_last_decision(tournament: Tournament) -> Optional[Tournament]:
    """
    Revert the player's last decision.

    Automatically resolved bye matches recorded after it are reverted along
    the way and then resolved again. Returns None when the player has not
    decided anything yet.
    """
    if tournament.history and all(d.automatic for d in tournament.history):
        return None

    updated = tournament
    while True:
        entry = updated.history[-1] if updated.history else None
        updated = undo_last_match(updated)
        if updated is None:
            return None
        if entry is None or not entry.automatic:
            break
    return auto_advance_byes(updated)


def replay(tournament: Tournament, decisions: Iterable[Decision]) -> Tournament:
    """
    Re-apply a decision log to a freshly built bracket.

    Automatic entries are skipped since bye matches resolve themselves.
    Raises InvalidInputError if the log does not fit the bracket.
    """
    updated = auto_advance_byes(tournament)
    for decision in decisions:
        if decision.automatic:
            continue
        current = get_current_match(updated)
        if current is None or current.id != decision.match_id:
            raise InvalidInputError(f'Decision for {decision.match_id} does not match the bracket state')
        winner = updated.find_item(decision.winner_id)
        advanced = play(updated, winner)
        if advanced is updated:
            raise InvalidInputError(f'Winner {decision.winner_id} is not playing in {decision.match_id}')
        updated = advanced
    return updated


def completed_matches(tournament: Tournament) -> List[Match]:
    return [m for m in tournament.matches if m.completed]
