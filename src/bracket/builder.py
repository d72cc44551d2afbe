"""
Single elimination bracket construction.
"""
import logging
import math
import random
import uuid
from typing import List, Optional

from .engine import auto_advance_byes
from .errors import DegenerateBracketError, InvalidInputError
from .models import Item, Match, Tournament, is_bye

logger = logging.getLogger(__name__)

MIN_BRACKET_SIZE = 4
MAX_BRACKET_SIZE = 128
SUPPORTED_SIZES = (4, 8, 16, 32, 64, 128)


def calculate_bracket_size(num_items: int, min_size: int = MIN_BRACKET_SIZE,
                           max_size: int = MAX_BRACKET_SIZE) -> int:
    """Calculate the bracket size (next power of 2, clamped to the supported range)."""
    if num_items <= 0:
        return 0
    size = 2 ** math.ceil(math.log2(num_items))
    return min(max(size, min_size), max_size)


def calculate_total_rounds(bracket_size: int) -> int:
    if bracket_size <= 1:
        return 0
    return math.ceil(math.log2(bracket_size))


def calculate_byes(num_items: int, bracket_size: Optional[int] = None) -> int:
    """Calculate number of byes needed."""
    if bracket_size is None:
        bracket_size = calculate_bracket_size(num_items)
    return max(bracket_size - num_items, 0)


def get_available_sizes(num_items: int, max_size: int = MAX_BRACKET_SIZE) -> List[dict]:
    """
    Bracket sizes a player may choose for a pool of num_items, largest first.

    A size is offered when it needs no bye-vs-bye pairing, i.e. at least half
    of its slots are real items. Larger pools are sampled down to the size.
    """
    options = []
    for size in SUPPORTED_SIZES:
        if size > max_size or num_items < size // 2:
            continue
        if size > calculate_bracket_size(num_items, max_size=max_size):
            continue
        options.append({'size': size, 'byes': calculate_byes(num_items, size)})
    return list(reversed(options))


def _bye_slots(pair_count: int, bye_count: int) -> set:
    """Spread bye-carrying pairings evenly across the first round."""
    if bye_count == 0:
        return set()
    return {k * pair_count // bye_count for k in range(bye_count)}


def layout_entries(items: List[Item], bracket_size: int) -> List[Item]:
    """
    Pad items with byes up to bracket_size.

    Every bye is paired with exactly one real item. Raises
    DegenerateBracketError if there are too few real items for that.
    """
    bye_count = bracket_size - len(items)
    pair_count = bracket_size // 2
    if bye_count > pair_count:
        raise DegenerateBracketError(
            f'{len(items)} items cannot fill a bracket of {bracket_size} without a bye-vs-bye match'
        )

    bye_slots = _bye_slots(pair_count, bye_count)
    pending = list(items)
    entries = []
    for slot in range(pair_count):
        if slot in bye_slots:
            entries.append(pending.pop(0))
            entries.append(Item.bye(len(entries)))
        else:
            entries.append(pending.pop(0))
            entries.append(pending.pop(0))
    return entries


def create_initial_matches(entries: List[Item]) -> List[Match]:
    """Pair consecutive entries into round 1 matches."""
    matches = []
    for i in range(0, len(entries) - 1, 2):
        matches.append(Match(round=1, match_number=i // 2 + 1, item_a=entries[i], item_b=entries[i + 1]))
    return matches


def create_tournament(items: List[Item], title: str = 'Tournament', description: Optional[str] = None,
                      target_size: Optional[int] = None, tournament_id: Optional[str] = None,
                      shuffle: bool = True, rng: Optional[random.Random] = None,
                      min_size: int = MIN_BRACKET_SIZE, max_size: int = MAX_BRACKET_SIZE) -> Optional[Tournament]:
    """
    Build a bracket in its initial state.

    Items are shuffled (unless shuffle is False), cut down to the bracket
    size if there are more of them, then padded with byes. Returns None when
    fewer than two real items are given.
    """
    real_items = [item for item in items if not is_bye(item)]
    if len(real_items) < 2:
        logger.warning('Cannot build a bracket from %d item(s)', len(real_items))
        return None

    if target_size is not None:
        if target_size not in SUPPORTED_SIZES or not (min_size <= target_size <= max_size):
            raise InvalidInputError(f'Unsupported bracket size: {target_size}')
        bracket_size = target_size
    else:
        bracket_size = calculate_bracket_size(len(real_items), min_size, max_size)

    pool = list(real_items)
    if shuffle:
        (rng or random).shuffle(pool)
    if len(pool) > bracket_size:
        logger.info('Sampling %d of %d items for a bracket of %d', bracket_size, len(pool), bracket_size)
        pool = pool[:bracket_size]

    entries = layout_entries(pool, bracket_size)
    tournament = Tournament(
        id=tournament_id or f'tournament-{uuid.uuid4().hex[:12]}',
        title=title,
        description=description,
        items=entries,
        total_rounds=calculate_total_rounds(bracket_size),
        matches=create_initial_matches(entries),
    )
    logger.info('Created bracket %s: %d items, size %d, %d rounds',
                tournament.id, len(pool), bracket_size, tournament.total_rounds)
    return tournament


def start_tournament(items: List[Item], **options) -> Optional[Tournament]:
    """create_tournament, with the first round's byes already resolved."""
    tournament = create_tournament(items, **options)
    if tournament is None:
        return None
    return auto_advance_byes(tournament)
