"""Key-value durable stores for the statistics blob.

Every store exposes the same two operations: ``load()`` returns the stored
dict (or None when nothing was saved yet) and ``save(blob)`` replaces it in
full. Failures surface as PersistenceUnavailable.
"""

import json
import logging
import os
import tempfile
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from orpquiz import db
from orpquiz.models import StatsBlob
from .errors import PersistenceUnavailable

logger = logging.getLogger(__name__)


class MemoryStatsStore:
    """In-process store; goes through JSON so values behave like a real store."""

    def __init__(self, initial: Optional[dict] = None):
        self._payload = json.dumps(initial) if initial is not None else None

    def load(self) -> Optional[dict]:
        return json.loads(self._payload) if self._payload is not None else None

    def save(self, blob: dict) -> None:
        self._payload = json.dumps(blob)


class JsonFileStatsStore:
    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[dict]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceUnavailable(f'Cannot read {self.path}: {exc}') from exc

    def save(self, blob: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.stats-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                    json.dump(blob, fh, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise PersistenceUnavailable(f'Cannot write {self.path}: {exc}') from exc


class DatabaseStatsStore:
    """One ``stats_blob`` row per key; needs an application context."""

    def __init__(self, key: str):
        self.key = key

    def load(self) -> Optional[dict]:
        try:
            row = db.session.get(StatsBlob, self.key)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceUnavailable(f'Cannot read stats blob {self.key}: {exc}') from exc
        if row is None:
            return None
        try:
            return json.loads(row.payload)
        except ValueError as exc:
            raise PersistenceUnavailable(f'Corrupt stats blob {self.key}: {exc}') from exc

    def save(self, blob: dict) -> None:
        try:
            row = db.session.get(StatsBlob, self.key)
            if row is None:
                row = StatsBlob(key=self.key)
            row.payload = json.dumps(blob, ensure_ascii=False)
            row.updated_at = time.time()
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceUnavailable(f'Cannot write stats blob {self.key}: {exc}') from exc


def build_store(config) -> object:
    backend = (config.get('STATS_BACKEND') or 'database').lower()
    if backend == 'file':
        return JsonFileStatsStore(config.get('STATS_FILE_PATH'))
    if backend == 'memory':
        return MemoryStatsStore()
    if backend != 'database':
        logger.warning(f"[stats-store] unknown STATS_BACKEND={backend!r}, using database")
    return DatabaseStatsStore(config.get('STATS_STORAGE_KEY', 'geo_quiz_statistics'))
