"""
Value types shared by the bracket engine, the statistics aggregators and the stores.
"""
from typing import Dict, List, Optional

from .errors import StorageError

BYE_TITLE = 'BYE'


class Item:
    def __init__(self, id, title, image_ref=None, description=None, is_bye=False):
        self.id = str(id)
        self.title = title
        self.image_ref = image_ref
        self.description = description
        self.is_bye = is_bye

    @classmethod
    def bye(cls, index: int) -> 'Item':
        return cls(id=f'bye-{index}', title=BYE_TITLE, description='Auto Advance', is_bye=True)

    def __eq__(self, other):
        if not isinstance(other, Item):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"Item(id={self.id}, title={self.title})"

    def to_dict(self) -> Dict:
        data = {'id': self.id, 'title': self.title}
        if self.image_ref:
            data['image_ref'] = self.image_ref
        if self.description:
            data['description'] = self.description
        if self.is_bye:
            data['is_bye'] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Item':
        return cls(
            id=data['id'],
            title=data['title'],
            image_ref=data.get('image_ref'),
            description=data.get('description'),
            is_bye=data.get('is_bye', False),
        )


def is_bye(item: Optional[Item]) -> bool:
    """True for the padding sentinel, also recognised by its title."""
    return item is not None and (item.is_bye or item.title == BYE_TITLE)


def match_id(round_number: int, match_number: int) -> str:
    return f'match-{round_number}-{match_number}'


class Match:
    def __init__(self, round, match_number, item_a, item_b, winner=None, completed=False):
        self.id = match_id(round, match_number)
        self.round = round
        self.match_number = match_number
        self.item_a = item_a
        self.item_b = item_b
        self.winner = winner
        self.completed = completed

    @property
    def is_bye_match(self) -> bool:
        return is_bye(self.item_a) != is_bye(self.item_b)

    @property
    def loser(self) -> Optional[Item]:
        if self.winner is None:
            return None
        return self.item_b if self.winner == self.item_a else self.item_a

    def has_item(self, item: Item) -> bool:
        return item == self.item_a or item == self.item_b

    def resolved(self, winner: Item) -> 'Match':
        return Match(self.round, self.match_number, self.item_a, self.item_b,
                     winner=winner, completed=True)

    def reverted(self) -> 'Match':
        return Match(self.round, self.match_number, self.item_a, self.item_b)

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return (self.id, self.item_a, self.item_b, self.winner, self.completed) == \
            (other.id, other.item_a, other.item_b, other.winner, other.completed)

    def __repr__(self):
        return (f"Match(id={self.id}, item_a={self.item_a.title}, item_b={self.item_b.title}, "
                f"winner={self.winner.title if self.winner else None})")

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round': self.round,
            'match_number': self.match_number,
            'item_a': self.item_a.to_dict(),
            'item_b': self.item_b.to_dict(),
            'winner': self.winner.id if self.winner else None,
            'completed': self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        item_a = Item.from_dict(data['item_a'])
        item_b = Item.from_dict(data['item_b'])
        winner = None
        if data.get('winner') is not None:
            winner_id = str(data['winner'])
            if winner_id == item_a.id:
                winner = item_a
            elif winner_id == item_b.id:
                winner = item_b
            else:
                raise StorageError(f"Winner {winner_id} is not playing in {data.get('id')}")
        return cls(data['round'], data['match_number'], item_a, item_b,
                   winner=winner, completed=data.get('completed', False))


class Decision:
    """One entry of the decision log: which match was completed, and by whom."""

    def __init__(self, match_id, round, match_number, winner_id, automatic=False):
        self.match_id = match_id
        self.round = round
        self.match_number = match_number
        self.winner_id = winner_id
        self.automatic = automatic

    def __eq__(self, other):
        if not isinstance(other, Decision):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Decision(match_id={self.match_id}, winner_id={self.winner_id}, automatic={self.automatic})"

    def to_dict(self) -> Dict:
        return {
            'match_id': self.match_id,
            'round': self.round,
            'match_number': self.match_number,
            'winner_id': self.winner_id,
            'automatic': self.automatic,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Decision':
        return cls(data['match_id'], data['round'], data['match_number'],
                   str(data['winner_id']), data.get('automatic', False))


class Tournament:
    """
    One bracket's full state.

    Treated as a value: engine operations build a new Tournament through
    ``evolve`` instead of assigning to an existing one.
    """

    def __init__(self, id, title, items, total_rounds, matches, description=None,
                 current_round=1, current_match=1, completed=False, champion=None,
                 history=None):
        self.id = id
        self.title = title
        self.description = description
        self.items = list(items)
        self.total_rounds = total_rounds
        self.current_round = current_round
        self.current_match = current_match
        self.matches = list(matches)
        self.completed = completed
        self.champion = champion
        self.history = list(history) if history else []

    @property
    def bracket_size(self) -> int:
        return len(self.items)

    def evolve(self, **changes) -> 'Tournament':
        fields = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'items': self.items,
            'total_rounds': self.total_rounds,
            'current_round': self.current_round,
            'current_match': self.current_match,
            'matches': self.matches,
            'completed': self.completed,
            'champion': self.champion,
            'history': self.history,
        }
        fields.update(changes)
        return Tournament(**fields)

    def round_matches(self, round_number: int) -> List[Match]:
        return [m for m in self.matches if m.round == round_number]

    def find_match(self, match_key: str) -> Optional[Match]:
        for m in self.matches:
            if m.id == match_key:
                return m
        return None

    def find_item(self, item_id) -> Optional[Item]:
        item_id = str(item_id)
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def __repr__(self):
        return (f"Tournament(id={self.id}, round={self.current_round}/{self.total_rounds}, "
                f"match={self.current_match}, completed={self.completed})")

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'items': [item.to_dict() for item in self.items],
            'total_rounds': self.total_rounds,
            'current_round': self.current_round,
            'current_match': self.current_match,
            'matches': [m.to_dict() for m in self.matches],
            'completed': self.completed,
            'champion': self.champion.id if self.champion else None,
            'history': [d.to_dict() for d in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        items = [Item.from_dict(d) for d in data.get('items', [])]
        champion = None
        if data.get('champion') is not None:
            champion = next((i for i in items if i.id == str(data['champion'])), None)
        return cls(
            id=data['id'],
            title=data.get('title'),
            description=data.get('description'),
            items=items,
            total_rounds=data['total_rounds'],
            current_round=data.get('current_round', 1),
            current_match=data.get('current_match', 1),
            matches=[Match.from_dict(d) for d in data.get('matches', [])],
            completed=data.get('completed', False),
            champion=champion,
            history=[Decision.from_dict(d) for d in data.get('history', [])],
        )


class ItemStatistics:
    def __init__(self, item_id, appearances=0, wins=0, losses=0, championship_wins=0):
        self.item_id = item_id
        self.appearances = appearances
        self.wins = wins
        self.losses = losses
        self.championship_wins = championship_wins

    @property
    def win_rate(self) -> float:
        if self.appearances == 0:
            return 0.0
        return self.wins / self.appearances

    @classmethod
    def from_counters(cls, item_id, counters: Dict) -> 'ItemStatistics':
        return cls(
            item_id,
            appearances=counters.get('appearances', 0),
            wins=counters.get('wins', 0),
            losses=counters.get('losses', 0),
            championship_wins=counters.get('championship_wins', 0),
        )

    def __repr__(self):
        return (f"ItemStatistics(item_id={self.item_id}, wins={self.wins}, losses={self.losses}, "
                f"appearances={self.appearances}, championship_wins={self.championship_wins})")

    def to_dict(self) -> Dict:
        return {
            'item_id': self.item_id,
            'appearances': self.appearances,
            'wins': self.wins,
            'losses': self.losses,
            'championship_wins': self.championship_wins,
            'win_rate': round(self.win_rate, 4),
        }


class GlobalRankingEntry:
    def __init__(self, key, display_title, image_ref=None):
        self.key = key
        self.display_title = display_title
        self.image_ref = image_ref
        self.total_wins = 0
        self.total_losses = 0
        self.total_appearances = 0
        self.total_championships = 0
        self.total_participants = 0
        self.tournament_ids = set()
        self.categories = set()
        self.popularity_score = 0.0
        self.rank = 0

    @property
    def tournament_count(self) -> int:
        return len(self.tournament_ids)

    @property
    def win_rate(self) -> float:
        """Win rate as a 0-100 percentage."""
        if self.total_appearances == 0:
            return 0.0
        return self.total_wins / self.total_appearances * 100

    def __repr__(self):
        return (f"GlobalRankingEntry(rank={self.rank}, key={self.key}, "
                f"popularity_score={self.popularity_score})")

    def to_dict(self) -> Dict:
        return {
            'rank': self.rank,
            'key': self.key,
            'title': self.display_title,
            'image_ref': self.image_ref,
            'total_wins': self.total_wins,
            'total_losses': self.total_losses,
            'total_appearances': self.total_appearances,
            'total_championships': self.total_championships,
            'total_participants': self.total_participants,
            'tournament_count': self.tournament_count,
            'categories': sorted(self.categories),
            'win_rate': round(self.win_rate, 2),
            'popularity_score': round(self.popularity_score, 2),
        }


class Contest:
    """A published item list that brackets are built from."""

    def __init__(self, id, title, items, description=None, category='misc',
                 is_public=True, participants=0):
        self.id = id
        self.title = title
        self.items = list(items)
        self.description = description
        self.category = category or 'misc'
        self.is_public = is_public
        self.participants = participants

    def __repr__(self):
        return f"Contest(id={self.id}, title={self.title}, items={len(self.items)})"

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'is_public': self.is_public,
            'participants': self.participants,
            'items': [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Contest':
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            items=[Item.from_dict(d) for d in data.get('items', [])],
            description=data.get('description'),
            category=data.get('category', 'misc'),
            is_public=data.get('is_public', True),
            participants=data.get('participants', 0),
        )
