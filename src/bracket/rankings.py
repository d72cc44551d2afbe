"""
Cross-tournament popularity ranking.

Items are merged by normalized title rather than id, so the same subject
added to unrelated tournaments shows up as one ranking entry. The ranking
is always rebuilt from a full snapshot of the counters.
"""
import logging
from typing import Dict, Iterable, List, Optional

from .models import GlobalRankingEntry, ItemStatistics
from .statistics import counter_key
from .storage import Catalog, CounterStore, RankingSink

logger = logging.getLogger(__name__)


class RankingWeights:
    def __init__(self, participants=0.3, performance=0.4, tournaments=50, championships=100):
        self.participants = participants
        self.performance = performance
        self.tournaments = tournaments
        self.championships = championships

    @classmethod
    def from_settings(cls, settings: Dict) -> 'RankingWeights':
        weights = settings.get('ranking_weights') or {}
        return cls(**{k: v for k, v in weights.items()
                      if k in ('participants', 'performance', 'tournaments', 'championships')})

    def __repr__(self):
        return (f"RankingWeights(participants={self.participants}, performance={self.performance}, "
                f"tournaments={self.tournaments}, championships={self.championships})")


class RankingRecord:
    """One item's statistics in one tournament, with what the ranking needs to know about it."""

    def __init__(self, stats: ItemStatistics, title, tournament_id, participants=0,
                 category='misc', is_public=True, image_ref=None):
        self.stats = stats
        self.title = title
        self.tournament_id = tournament_id
        self.participants = participants
        self.category = category
        self.is_public = is_public
        self.image_ref = image_ref


def normalize_title(title: str) -> str:
    return ' '.join(title.split()).casefold()


def popularity_score(participants: int, win_rate: float, appearances: int, tournament_count: int,
                     championships: int, weights: Optional[RankingWeights] = None) -> float:
    """
    Weighted popularity: exposure (participants, tournaments), consistency
    (win rate percentage times appearances) and decisive wins (championships).
    """
    weights = weights or RankingWeights()
    return (participants * weights.participants
            + win_rate * appearances * weights.performance
            + tournament_count * weights.tournaments
            + championships * weights.championships)


def _sort_key(entry: GlobalRankingEntry):
    return (-entry.popularity_score, -entry.win_rate, -entry.total_appearances)


def build_global_rankings(records: Iterable[RankingRecord],
                          weights: Optional[RankingWeights] = None) -> List[GlobalRankingEntry]:
    """Fold records from public tournaments into ranked entries (rank 1 first)."""
    entries: Dict[str, GlobalRankingEntry] = {}
    for record in records:
        if not record.is_public or not record.title:
            continue
        key = normalize_title(record.title)
        if not key:
            continue
        entry = entries.get(key)
        if entry is None:
            entry = GlobalRankingEntry(key, record.title.strip(), image_ref=record.image_ref)
            entries[key] = entry
        elif not entry.image_ref and record.image_ref:
            entry.image_ref = record.image_ref

        entry.total_wins += record.stats.wins
        entry.total_losses += record.stats.losses
        entry.total_appearances += record.stats.appearances
        entry.total_championships += record.stats.championship_wins
        if record.tournament_id not in entry.tournament_ids:
            entry.total_participants += record.participants or 0
            entry.tournament_ids.add(record.tournament_id)
        entry.categories.add(record.category or 'misc')

    ranked = list(entries.values())
    for entry in ranked:
        entry.popularity_score = popularity_score(
            entry.total_participants,
            entry.win_rate,
            entry.total_appearances,
            entry.tournament_count,
            entry.total_championships,
            weights,
        )
    ranked.sort(key=_sort_key)
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


def collect_ranking_records(catalog: Catalog, counter_store: CounterStore) -> List[RankingRecord]:
    """Read a snapshot of every public tournament's item statistics."""
    snapshot = counter_store.snapshot()
    records = []
    for contest in catalog.list_contests():
        if not contest.is_public:
            continue
        for item in contest.items:
            counters = snapshot.get(counter_key(contest.id, item.id), {})
            records.append(RankingRecord(
                ItemStatistics.from_counters(item.id, counters),
                title=item.title,
                tournament_id=contest.id,
                participants=contest.participants,
                category=contest.category,
                is_public=contest.is_public,
                image_ref=item.image_ref,
            ))
    return records


def refresh_global_rankings(catalog: Catalog, counter_store: CounterStore, sink: RankingSink,
                            weights: Optional[RankingWeights] = None) -> List[GlobalRankingEntry]:
    """Rebuild the ranking from scratch and replace what the sink holds."""
    records = collect_ranking_records(catalog, counter_store)
    logger.info('Building global rankings from %d item record(s)', len(records))
    entries = build_global_rankings(records, weights)
    sink.replace(entries)
    top = ', '.join(f'{e.rank}. {e.display_title} ({e.popularity_score:.2f})' for e in entries[:3])
    logger.info('Global rankings updated: %d entries. Top: %s', len(entries), top or '-')
    return entries


def filter_rankings(rows: List[Dict], category: Optional[str] = None,
                    limit: Optional[int] = None) -> List[Dict]:
    """Select stored ranking rows for display, keeping rank order."""
    result = [r for r in rows if not category or category in r.get('categories', [])]
    result.sort(key=lambda r: r.get('rank', 0))
    if limit is not None:
        result = result[:max(limit, 0)]
    return result
