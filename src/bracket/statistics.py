"""
Per-tournament win/loss statistics.

Counts are written through a CounterStore, never read-modified-written
here, so many players voting in the same tournament at once cannot lose
each other's updates.
"""
import logging
from typing import Iterable, List, Set

from .models import Item, ItemStatistics, Match, Tournament, is_bye
from .storage import CounterStore

logger = logging.getLogger(__name__)

CHAMPION_KEY = 'champion'


def counter_key(tournament_id: str, item_id: str) -> str:
    """Counters are scoped to the tournament an item belongs to."""
    return f'{tournament_id}:{item_id}'


class StatisticsAggregator:
    def __init__(self, counter_store: CounterStore):
        self.counter_store = counter_store

    def record_vote(self, tournament_id: str, winner_id: str, loser_id: str):
        """Count a single decided match."""
        self.counter_store.increment_many(counter_key(tournament_id, winner_id),
                                          {'appearances': 1, 'wins': 1})
        self.counter_store.increment_many(counter_key(tournament_id, loser_id),
                                          {'appearances': 1, 'losses': 1})

    def fold_matches(self, tournament: Tournament, processed: Set[str]) -> List[Match]:
        """
        Count every completed, non-bye match of tournament not yet in processed.

        processed is owned by the caller and updated in place with the ids of
        the folded matches (and CHAMPION_KEY once the champion is counted), so
        calling this again over the same bracket changes nothing. Counters
        never go down, so a match undone after folding stays counted: fold a
        bracket once it is finished when picks can still be taken back.
        Returns the newly folded matches.
        """
        folded = []
        for match in tournament.matches:
            if not match.completed or match.winner is None or match.id in processed:
                continue
            if is_bye(match.item_a) or is_bye(match.item_b):
                continue
            self.record_vote(tournament.id, match.winner.id, match.loser.id)
            processed.add(match.id)
            folded.append(match)

        champion = tournament.champion
        if tournament.completed and champion is not None and not is_bye(champion) \
                and CHAMPION_KEY not in processed:
            self.counter_store.increment(counter_key(tournament.id, champion.id), 'championship_wins', 1)
            processed.add(CHAMPION_KEY)
            logger.info('Tournament %s: championship counted for %s', tournament.id, champion.title)

        if folded:
            logger.debug('Tournament %s: folded %d match(es)', tournament.id, len(folded))
        return folded

    def item_statistics(self, tournament_id: str, item_id: str) -> ItemStatistics:
        counters = self.counter_store.read(counter_key(tournament_id, item_id))
        return ItemStatistics.from_counters(item_id, counters)

    def tournament_statistics(self, tournament_id: str, items: Iterable[Item]) -> List[dict]:
        """Statistics for each item, best win rate first, with 1-based ranks."""
        rows = []
        for item in items:
            if is_bye(item):
                continue
            stats = self.item_statistics(tournament_id, item.id)
            rows.append((item, stats))
        rows.sort(key=lambda row: (row[1].win_rate, row[1].appearances), reverse=True)

        result = []
        for index, (item, stats) in enumerate(rows):
            row = stats.to_dict()
            row['rank'] = index + 1
            row['title'] = item.title
            row['image_ref'] = item.image_ref
            result.append(row)
        return result
