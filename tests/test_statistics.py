"""
Unit tests for per-tournament statistics.
"""
import pytest

from bracket.builder import create_tournament, start_tournament
from bracket.engine import get_current_match, play, undo_last_decision
from bracket.statistics import CHAMPION_KEY, StatisticsAggregator, counter_key
from bracket.storage import MemoryCounterStore
from conftest import make_items, pick_item_a


@pytest.fixture
def aggregator():
    return StatisticsAggregator(MemoryCounterStore())


def play_out(tournament):
    while not tournament.completed:
        tournament = play(tournament, pick_item_a(get_current_match(tournament)))
    return tournament


class TestRecordVote:
    """Tests for single vote recording."""

    def test_vote_updates_both_sides(self, aggregator):
        aggregator.record_vote('t1', 'a', 'b')
        winner = aggregator.item_statistics('t1', 'a')
        loser = aggregator.item_statistics('t1', 'b')
        assert (winner.wins, winner.losses, winner.appearances) == (1, 0, 1)
        assert (loser.wins, loser.losses, loser.appearances) == (0, 1, 1)

    def test_counters_scoped_per_tournament(self, aggregator):
        aggregator.record_vote('t1', 'a', 'b')
        assert aggregator.item_statistics('t2', 'a').appearances == 0
        assert counter_key('t1', 'a') == 't1:a'

    def test_unknown_item_has_zero_stats(self, aggregator):
        stats = aggregator.item_statistics('t1', 'nobody')
        assert stats.appearances == 0
        assert stats.win_rate == 0.0


class TestFoldMatches:
    """Tests for folding a played bracket into counters."""

    def test_full_bracket(self, aggregator, four_items):
        tournament = play_out(create_tournament(four_items, tournament_id='t1', shuffle=False))
        processed = set()
        folded = aggregator.fold_matches(tournament, processed)

        assert len(folded) == 3
        a = aggregator.item_statistics('t1', 'item-1')
        assert (a.wins, a.losses, a.appearances, a.championship_wins) == (2, 0, 2, 1)
        c = aggregator.item_statistics('t1', 'item-3')
        assert (c.wins, c.losses, c.appearances) == (1, 1, 2)
        assert CHAMPION_KEY in processed

    def test_folding_twice_counts_once(self, aggregator, four_items):
        tournament = play_out(create_tournament(four_items, tournament_id='t1', shuffle=False))
        processed = set()
        aggregator.fold_matches(tournament, processed)
        assert aggregator.fold_matches(tournament, processed) == []
        a = aggregator.item_statistics('t1', 'item-1')
        assert a.wins == 2
        assert a.championship_wins == 1

    def test_incremental_folding(self, aggregator, four_items):
        """Folding after every pick gives the same totals as folding at the end."""
        tournament = create_tournament(four_items, tournament_id='t1', shuffle=False)
        processed = set()
        while not tournament.completed:
            tournament = play(tournament, pick_item_a(get_current_match(tournament)))
            aggregator.fold_matches(tournament, processed)
        assert aggregator.item_statistics('t1', 'item-1').wins == 2
        assert aggregator.item_statistics('t1', 'item-1').championship_wins == 1
        assert aggregator.item_statistics('t1', 'item-2').losses == 1

    def test_bye_matches_skipped(self, aggregator, three_items):
        tournament = play_out(start_tournament(three_items, tournament_id='t1', shuffle=False))
        folded = aggregator.fold_matches(tournament, set())
        assert len(folded) == 2
        a = aggregator.item_statistics('t1', 'item-1')
        assert a.appearances == 1
        assert aggregator.counter_store.read(counter_key('t1', 'bye-1'))['appearances'] == 0

    def test_championship_counted_once_after_undo(self, aggregator, four_items):
        tournament = play_out(create_tournament(four_items, tournament_id='t1', shuffle=False))
        processed = set()
        aggregator.fold_matches(tournament, processed)
        replayed = play(undo_last_decision(tournament), tournament.champion)
        aggregator.fold_matches(replayed, processed)
        assert aggregator.item_statistics('t1', 'item-1').championship_wins == 1

    def test_incomplete_bracket_has_no_champion(self, aggregator, four_items):
        tournament = create_tournament(four_items, tournament_id='t1', shuffle=False)
        tournament = play(tournament, pick_item_a(get_current_match(tournament)))
        processed = set()
        aggregator.fold_matches(tournament, processed)
        assert CHAMPION_KEY not in processed
        assert processed == {'match-1-1'}


class TestTournamentStatistics:
    """Tests for the per-tournament table."""

    def test_sorted_by_win_rate_then_appearances(self, aggregator):
        items = make_items('A', 'B', 'C')
        aggregator.record_vote('t1', 'item-2', 'item-1')
        aggregator.record_vote('t1', 'item-2', 'item-3')
        aggregator.record_vote('t1', 'item-3', 'item-1')

        rows = aggregator.tournament_statistics('t1', items)
        assert [r['title'] for r in rows] == ['B', 'C', 'A']
        assert [r['rank'] for r in rows] == [1, 2, 3]
        assert rows[0]['win_rate'] == 1.0
        assert rows[1]['win_rate'] == 0.5

    def test_ties_broken_by_appearances(self, aggregator):
        items = make_items('A', 'B')
        aggregator.record_vote('t1', 'item-1', 'x')
        aggregator.record_vote('t1', 'item-2', 'y')
        aggregator.record_vote('t1', 'item-2', 'z')
        rows = aggregator.tournament_statistics('t1', items)
        assert [r['title'] for r in rows] == ['B', 'A']

    def test_items_without_votes_listed(self, aggregator):
        rows = aggregator.tournament_statistics('t1', make_items('A'))
        assert rows[0]['appearances'] == 0
        assert rows[0]['rank'] == 1
