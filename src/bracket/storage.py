"""
Collaborator stores used by the engine's callers.

Each store has an in-memory implementation (tests, single process) and a
YAML-file implementation guarded by a FileLock (the web app and the CLI).
Counter updates are atomic in both: the new value is computed and written
while holding the lock, so concurrent writers never lose an increment.
"""
import copy
import logging
import os
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import yaml
from filelock import FileLock

from .errors import InvalidInputError, StorageError
from .models import Contest, Item, Match, Tournament

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ('appearances', 'wins', 'losses', 'championship_wins')


def _check_fields(deltas: Dict[str, int]):
    for field in deltas:
        if field not in COUNTER_FIELDS:
            raise ValueError(f'Unknown counter field: {field}')


def empty_counters() -> Dict[str, int]:
    return {field: 0 for field in COUNTER_FIELDS}


class YamlFile:
    """A YAML document on disk with a process- and thread-safe update cycle."""

    def __init__(self, path: str, default, timeout: float = 10):
        self.path = path
        self.default = default
        self._thread_lock = threading.RLock()
        self._file_lock = FileLock(path + '.lock', timeout=timeout)

    @contextmanager
    def locked(self):
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        with self._thread_lock, self._file_lock:
            yield

    def load(self):
        if not os.path.exists(self.path):
            return copy.deepcopy(self.default)
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise StorageError(f'Failed to parse {self.path}: {e}') from e
        return data if data else copy.deepcopy(self.default)

    def save(self, data):
        tmp_path = f'{self.path}.{uuid.uuid4().hex}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False)
        os.replace(tmp_path, self.path)

    def read(self):
        with self.locked():
            return self.load()

    def update(self, change):
        """Apply change(data) to the stored document under the lock; return its result."""
        with self.locked():
            data = self.load()
            result = change(data)
            self.save(data)
            return result


# --- Counter store ---------------------------------------------------------

class CounterStore:
    """Per-item win/loss counters with atomic increments."""

    def increment(self, item_id: str, field: str, delta: int = 1) -> int:
        return self.increment_many(item_id, {field: delta})[field]

    def increment_many(self, item_id: str, deltas: Dict[str, int]) -> Dict[str, int]:
        raise NotImplementedError

    def read(self, item_id: str) -> Dict[str, int]:
        raise NotImplementedError

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        raise NotImplementedError


class MemoryCounterStore(CounterStore):
    def __init__(self):
        self._counters = {}
        self._lock = threading.Lock()

    def increment_many(self, item_id, deltas):
        _check_fields(deltas)
        with self._lock:
            counters = self._counters.setdefault(item_id, empty_counters())
            for field, delta in deltas.items():
                counters[field] += delta
            return dict(counters)

    def read(self, item_id):
        with self._lock:
            return dict(self._counters.get(item_id, empty_counters()))

    def snapshot(self):
        with self._lock:
            return {key: dict(value) for key, value in self._counters.items()}


class YamlCounterStore(CounterStore):
    def __init__(self, path: str, timeout: float = 10):
        self._file = YamlFile(path, {'counters': {}}, timeout=timeout)

    def increment_many(self, item_id, deltas):
        _check_fields(deltas)

        def change(data):
            counters = data.setdefault('counters', {}).setdefault(item_id, empty_counters())
            for field, delta in deltas.items():
                counters[field] = counters.get(field, 0) + delta
            return dict(counters)

        return self._file.update(change)

    def read(self, item_id):
        counters = self._file.read().get('counters', {}).get(item_id)
        return {**empty_counters(), **(counters or {})}

    def snapshot(self):
        return {key: {**empty_counters(), **value}
                for key, value in self._file.read().get('counters', {}).items()}


# --- Contest catalog (item source) -----------------------------------------

class Catalog:
    """Published contests and their ordered item lists."""

    def get_contest(self, contest_id: str) -> Optional[Contest]:
        raise NotImplementedError

    def list_contests(self) -> List[Contest]:
        raise NotImplementedError

    def save_contest(self, contest: Contest):
        raise NotImplementedError

    def add_participant(self, contest_id: str) -> int:
        raise NotImplementedError

    def get_items(self, contest_id: str) -> List[Item]:
        contest = self.get_contest(contest_id)
        return list(contest.items) if contest else []


class MemoryCatalog(Catalog):
    def __init__(self, contests=None):
        self._contests = {}
        self._lock = threading.Lock()
        for contest in contests or []:
            self.save_contest(contest)

    def get_contest(self, contest_id):
        return self._contests.get(contest_id)

    def list_contests(self):
        return list(self._contests.values())

    def save_contest(self, contest):
        with self._lock:
            self._contests[contest.id] = contest

    def add_participant(self, contest_id):
        with self._lock:
            contest = self._contests[contest_id]
            contest.participants += 1
            return contest.participants


class YamlCatalog(Catalog):
    def __init__(self, path: str, timeout: float = 10):
        self._file = YamlFile(path, {'contests': []}, timeout=timeout)

    def get_contest(self, contest_id):
        for data in self._file.read().get('contests', []):
            if data['id'] == contest_id:
                return Contest.from_dict(data)
        return None

    def list_contests(self):
        return [Contest.from_dict(d) for d in self._file.read().get('contests', [])]

    def save_contest(self, contest):
        def change(data):
            contests = [c for c in data.get('contests', []) if c['id'] != contest.id]
            contests.append(contest.to_dict())
            data['contests'] = contests

        self._file.update(change)

    def add_participant(self, contest_id):
        def change(data):
            for c in data.get('contests', []):
                if c['id'] == contest_id:
                    c['participants'] = c.get('participants', 0) + 1
                    return c['participants']
            raise KeyError(contest_id)

        return self._file.update(change)


# --- Match log --------------------------------------------------------------

class YamlMatchLog:
    """Append-only record of completed matches."""

    def __init__(self, path: str, timeout: float = 10):
        self._file = YamlFile(path, {'matches': []}, timeout=timeout)

    def append(self, tournament_id: str, matches: List[Match]) -> int:
        recorded_at = datetime.now().isoformat()
        records = [{
            'tournament_id': tournament_id,
            'round': m.round,
            'match_number': m.match_number,
            'item_a': m.item_a.id,
            'item_b': m.item_b.id,
            'winner': m.winner.id if m.winner else None,
            'recorded_at': recorded_at,
        } for m in matches if m.completed]

        def change(data):
            data.setdefault('matches', []).extend(records)
            return len(records)

        return self._file.update(change)

    def read(self, tournament_id: Optional[str] = None) -> List[Dict]:
        records = self._file.read().get('matches', [])
        if tournament_id is None:
            return records
        return [r for r in records if r['tournament_id'] == tournament_id]


# --- Ranking sink -----------------------------------------------------------

class RankingSink:
    """Holds the latest published global ranking; replaced wholesale."""

    def replace(self, entries) -> int:
        raise NotImplementedError

    def load(self) -> List[Dict]:
        raise NotImplementedError


class MemoryRankingSink(RankingSink):
    def __init__(self):
        self._rankings = []

    def replace(self, entries):
        self._rankings = [e.to_dict() for e in entries]
        return len(self._rankings)

    def load(self):
        return list(self._rankings)


class YamlRankingSink(RankingSink):
    def __init__(self, path: str, timeout: float = 10):
        self._file = YamlFile(path, {'rankings': [], 'last_updated': None}, timeout=timeout)

    def replace(self, entries):
        rows = [e.to_dict() for e in entries]

        def change(data):
            data['rankings'] = rows
            data['last_updated'] = datetime.now().isoformat()
            return len(rows)

        return self._file.update(change)

    def load(self):
        return self._file.read().get('rankings', [])

    def last_updated(self) -> Optional[str]:
        return self._file.read().get('last_updated')


# --- Play sessions ----------------------------------------------------------

class YamlSessionStore:
    """One file per in-progress bracket, with its set of already folded matches."""

    def __init__(self, directory: str, timeout: float = 10):
        self.directory = directory
        self.timeout = timeout
        self._files = {}

    def _file(self, session_id: str) -> YamlFile:
        if not session_id or not session_id.isalnum():
            raise InvalidInputError(f'Invalid session id: {session_id!r}')
        # Reuse one YamlFile per session so load/save inside locked() re-enter its locks
        if session_id not in self._files:
            path = os.path.join(self.directory, f'{session_id}.yaml')
            self._files[session_id] = YamlFile(path, {}, timeout=self.timeout)
        return self._files[session_id]

    def new_session_id(self) -> str:
        return uuid.uuid4().hex

    @contextmanager
    def locked(self, session_id: str):
        """Hold the session's lock across a load-change-save cycle."""
        with self._file(session_id).locked():
            yield

    def save(self, session_id: str, tournament: Tournament, processed=None):
        data = {'tournament': tournament.to_dict(), 'processed': sorted(processed or [])}
        f = self._file(session_id)
        with f.locked():
            f.save(data)

    def load(self, session_id: str) -> Optional[Tuple[Tournament, set]]:
        data = self._file(session_id).read()
        if not data or 'tournament' not in data:
            return None
        return Tournament.from_dict(data['tournament']), set(data.get('processed', []))
