"""Persistent player statistics.

The service owns one statistics blob (overall totals, per-kraj and per-okres
buckets, recent sessions, achievements) and the currently running session.
Every mutation is built on a copy of the blob, written to the store and only
then swapped in, so readers see either the old or the new state.
"""

import copy
import hmac
import json
import logging
import secrets
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .errors import InvalidResetToken, InvalidSessionState, PersistenceUnavailable

logger = logging.getLogger(__name__)

CATEGORIES = {
    'kraj': 'by_kraj',
    'okres': 'by_okres',
}
FILTER_TYPES = (None, 'kraj', 'okres')

SESSION_HISTORY_LIMIT = 50
HIGH_PRECISION_THRESHOLD = 0.9
MASTERY_MIN_ACCURACY = 90.0
MASTERY_MIN_ATTEMPTS = 10
PERFECT_MIN_ATTEMPTS = 5


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _accuracy(correct: int, attempts: int) -> float:
    return correct * 100.0 / attempts if attempts else 0.0


def create_default_stats() -> dict:
    now = _now_iso()
    return {
        'overall': {
            'total_attempts': 0,
            'total_correct': 0,
            'total_score': 0.0,
            'total_precision_sum': 0.0,
            'average_precision': 0.0,
            'best_score': 0.0,
            'best_accuracy': 0.0,
        },
        'by_kraj': {},
        'by_okres': {},
        'sessions': [],
        'achievements': {
            'perfect_score': 0,
            'high_precision': 0,
            'master_regions': [],
        },
        'timestamps': {
            'first_played': now,
            'last_played': now,
        },
    }


def _merge_defaults(stored: dict, history_limit: int = SESSION_HISTORY_LIMIT) -> dict:
    """Lay a stored blob over fresh defaults so missing keys get filled in."""
    stats = create_default_stats()
    for key in ('overall', 'achievements', 'timestamps'):
        stats[key].update(stored.get(key) or {})
    for key in CATEGORIES.values():
        stats[key] = dict(stored.get(key) or {})
    stats['sessions'] = list(stored.get('sessions') or [])[:history_limit]
    return stats


def _category_key(category: str) -> str:
    if category in CATEGORIES:
        return CATEGORIES[category]
    if category in CATEGORIES.values():
        return category
    raise ValueError(f'Unknown statistics category: {category!r}')


class StatisticsService:
    """Cumulative statistics for a single player.

    One instance per application. Each read-modify-write runs under a lock
    because the web server handles requests on several threads.
    """

    def __init__(self, store, history_limit: int = SESSION_HISTORY_LIMIT, reset_token_ttl: float = 120):
        self._store = store
        self._history_limit = int(history_limit)
        self._reset_token_ttl = float(reset_token_ttl)
        self._lock = threading.RLock()
        self._stats: Optional[dict] = None
        self._current: Optional[dict] = None
        self._pending_reset: Optional[Tuple[str, float]] = None
        self._last_session_id = 0
        self._load_failed = False
        self.degraded = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> dict:
        if self._stats is not None:
            return self._stats
        try:
            stored = self._store.load()
        except PersistenceUnavailable as exc:
            logger.warning(f"[persist-fail] load failed, continuing in memory: {exc}")
            self._load_failed = True
            self.degraded = True
            stored = None
        if stored is None:
            self._stats = create_default_stats()
            self._persist(self._stats)
        else:
            self._stats = _merge_defaults(stored, self._history_limit)
        return self._stats

    def _persist(self, blob: dict) -> bool:
        if self.degraded:
            return False
        try:
            self._store.save(blob)
            return True
        except PersistenceUnavailable as exc:
            logger.warning(f"[persist-fail] save failed, continuing in memory: {exc}")
            self.degraded = True
            return False

    def _commit(self, blob: dict) -> None:
        self._persist(blob)
        self._stats = blob

    def _retry_store(self) -> None:
        # A blob that failed to load is never overwritten by in-memory defaults
        if self.degraded and not self._load_failed:
            self.degraded = False
            if self._persist(self._stats):
                logger.info('[persist-recovered] statistics store writable again')

    def reload(self) -> None:
        """Drop the cached blob; the next operation reads the store again."""
        with self._lock:
            self._stats = None
            self._load_failed = False
            self.degraded = False

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _next_session_id(self) -> int:
        # Millisecond clock, bumped past the last id handed out or archived
        floor = self._last_session_id
        if self._stats and self._stats['sessions']:
            floor = max(floor, int(self._stats['sessions'][0].get('id') or 0))
        self._last_session_id = max(floor + 1, int(time.time() * 1000))
        return self._last_session_id

    @property
    def current_session(self) -> Optional[dict]:
        with self._lock:
            return dict(self._current) if self._current is not None else None

    def start_session(self, filter_type: Optional[str] = None, filter_value: Optional[str] = None) -> dict:
        """Begin a new session; an unfinished one with attempts is archived first."""
        if filter_type not in FILTER_TYPES:
            raise ValueError(f'Unknown filter type: {filter_type!r}')
        if filter_type is None:
            filter_value = None
        with self._lock:
            self._ensure_loaded()
            self._retry_store()
            if self._current is not None:
                if self._current['attempts'] > 0:
                    self.end_session()
                else:
                    logger.info(f"[session-discard] id={self._current['id']} had no attempts")
            self._current = {
                'id': self._next_session_id(),
                'start_time': _now_iso(),
                'end_time': None,
                'filter_type': filter_type,
                'filter_value': filter_value,
                'attempts': 0,
                'correct': 0,
                'score': 0.0,
                'accuracy': 0.0,
            }
            logger.info(f"[session-start] id={self._current['id']} filter={filter_type}:{filter_value}")
            return dict(self._current)

    def restart_session(self, filter_type: Optional[str] = None, filter_value: Optional[str] = None) -> dict:
        if filter_type not in FILTER_TYPES:
            raise ValueError(f'Unknown filter type: {filter_type!r}')
        with self._lock:
            self._ensure_loaded()
            self._retry_store()
            if self._current is not None and self._current['attempts'] > 0:
                self.end_session()
            else:
                self._current = None
            return self.start_session(filter_type, filter_value)

    def end_session(self) -> dict:
        with self._lock:
            if self._current is None:
                raise InvalidSessionState('end_session called with no active session')
            stats = copy.deepcopy(self._ensure_loaded())
            session = dict(self._current)
            session['end_time'] = _now_iso()
            session['accuracy'] = _accuracy(session['correct'], session['attempts'])

            if session['accuracy'] == 100 and session['attempts'] >= PERFECT_MIN_ATTEMPTS:
                stats['achievements']['perfect_score'] += 1
            if session['attempts'] > 0 and session['accuracy'] > stats['overall']['best_accuracy']:
                stats['overall']['best_accuracy'] = session['accuracy']

            stats['sessions'].insert(0, session)
            del stats['sessions'][self._history_limit:]

            self._commit(stats)
            self._current = None
            logger.info(f"[session-end] id={session['id']} attempts={session['attempts']} "
                        f"accuracy={session['accuracy']:.1f}")
            return dict(session)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def record_attempt(self, attempt) -> dict:
        """Fold one graded attempt into the aggregates and the current session.

        Returns the updated session counters.
        """
        correct = bool(attempt.correct)
        if correct and attempt.coefficient is None:
            raise ValueError('A correct attempt needs a precision coefficient')
        coefficient = float(attempt.coefficient) if correct else 0.0

        with self._lock:
            if self._current is None:
                raise InvalidSessionState('record_attempt called with no active session')
            stats = copy.deepcopy(self._ensure_loaded())
            overall = stats['overall']
            achievements = stats['achievements']

            overall['total_attempts'] += 1
            if correct:
                overall['total_correct'] += 1
                overall['total_score'] += coefficient
                overall['total_precision_sum'] += coefficient
                if coefficient >= HIGH_PRECISION_THRESHOLD:
                    achievements['high_precision'] += 1
            if coefficient > overall['best_score']:
                overall['best_score'] = coefficient
            if overall['total_correct'] > 0:
                overall['average_precision'] = overall['total_precision_sum'] / overall['total_correct']

            if attempt.kraj:
                self._update_bucket(stats, 'by_kraj', attempt.kraj, correct)
            if attempt.okres:
                self._update_bucket(stats, 'by_okres', attempt.okres, correct)

            stats['timestamps']['last_played'] = _now_iso()

            session = dict(self._current)
            session['attempts'] += 1
            if correct:
                session['correct'] += 1
                session['score'] += coefficient
            session['accuracy'] = _accuracy(session['correct'], session['attempts'])

            self._commit(stats)
            self._current = session
            return dict(session)

    @staticmethod
    def _update_bucket(stats: dict, category_key: str, name: str, correct: bool) -> None:
        bucket = stats[category_key].setdefault(name, {'attempts': 0, 'correct': 0, 'accuracy': 0.0})
        bucket['attempts'] += 1
        if correct:
            bucket['correct'] += 1
        bucket['accuracy'] = _accuracy(bucket['correct'], bucket['attempts'])

        if category_key == 'by_kraj':
            mastered = stats['achievements']['master_regions']
            if (bucket['accuracy'] >= MASTERY_MIN_ACCURACY and bucket['attempts'] >= MASTERY_MIN_ATTEMPTS
                    and name not in mastered):
                mastered.append(name)
                logger.info(f"[mastery] {name} at {bucket['accuracy']:.1f}% over {bucket['attempts']} attempts")

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def request_reset(self) -> str:
        """Issue a single-use token that confirm_reset() must be given back."""
        with self._lock:
            token = secrets.token_urlsafe(16)
            self._pending_reset = (token, time.monotonic() + self._reset_token_ttl)
            return token

    def confirm_reset(self, token: str) -> dict:
        """Wipe every statistic. Irreversible."""
        with self._lock:
            pending, self._pending_reset = self._pending_reset, None
            if pending is None:
                raise InvalidResetToken('No reset was requested')
            expected, expires_at = pending
            if time.monotonic() > expires_at:
                raise InvalidResetToken('Reset token expired')
            if not token or not hmac.compare_digest(str(token), expected):
                raise InvalidResetToken('Reset token does not match')

            self._load_failed = False
            self.degraded = False
            self._commit(create_default_stats())
            if self._current is not None:
                active, self._current = self._current, None
                self.start_session(active['filter_type'], active['filter_value'])
            logger.info('[reset] statistics wiped')
            return self.get_overall_stats()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_overall_stats(self) -> dict:
        with self._lock:
            overall = dict(self._ensure_loaded()['overall'])
        overall['accuracy'] = _accuracy(overall['total_correct'], overall['total_attempts'])
        return overall

    def get_region_stats(self, category: str, name: str) -> Optional[dict]:
        key = _category_key(category)
        with self._lock:
            entry = self._ensure_loaded()[key].get(name)
            return dict(entry) if entry is not None else None

    def get_all_region_stats(self, category: str) -> List[dict]:
        """Buckets sorted by accuracy, best first; ties keep insertion order."""
        key = _category_key(category)
        with self._lock:
            entries = [dict(name=name, **values) for name, values in self._ensure_loaded()[key].items()]
        return sorted(entries, key=lambda e: e['accuracy'], reverse=True)

    def get_recent_sessions(self, limit: int = 10) -> List[dict]:
        if limit <= 0:
            return []
        with self._lock:
            return copy.deepcopy(self._ensure_loaded()['sessions'][:limit])

    def get_achievements(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._ensure_loaded()['achievements'])

    def get_play_time_stats(self) -> dict:
        with self._lock:
            stats = self._ensure_loaded()
            first = datetime.fromisoformat(stats['timestamps']['first_played'])
            last = datetime.fromisoformat(stats['timestamps']['last_played'])
            total_sessions = len(stats['sessions'])
        return {
            'first_played': first.date().isoformat(),
            'last_played': last.date().isoformat(),
            'days_since_first': max(0, (last - first).days),
            'total_sessions': total_sessions,
        }

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._ensure_loaded())

    def export_stats(self) -> Tuple[str, str]:
        """Return (filename, pretty JSON) for a downloadable backup."""
        blob = self.snapshot()
        filename = f"geo-quiz-stats-{datetime.now(timezone.utc).date().isoformat()}.json"
        return filename, json.dumps(blob, indent=2, ensure_ascii=False)
