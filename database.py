import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from config import DB_FILE, HISTORY_LIMIT
from shared.models import PerformanceMetrics, Preferences, SessionRecord

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"
CURRENT_GAME_KEY = "currentGame"
PERFORMANCE_STATS_KEY = "performanceStats"
PREFERENCES_KEY = "preferences"

STORAGE_KEYS = (HISTORY_KEY, CURRENT_GAME_KEY, PERFORMANCE_STATS_KEY, PREFERENCES_KEY)


class PersistenceUnavailable(Exception):
    """The backing store could not be read or written."""


class MalformedStoredData(Exception):
    """A stored value could not be decoded into the expected shape."""


class KeyValueStore(ABC):
    """
    Minimal string key-value store used for all game persistence.

    Implementations raise PersistenceUnavailable when the medium fails.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""

    def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Dictionary-backed store; nothing survives the process."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class SQLiteStore(KeyValueStore):
    """
    Key-value store kept in a single SQLite table.
    """

    def __init__(self, db_file=DB_FILE):
        """
        Initialize the database connection.

        Args:
            db_file: Path to the SQLite database file (":memory:" for a private in-memory db)
        """
        self.db_file = db_file
        self.conn = None
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the database and table if they don't exist."""
        try:
            # Create database directory if it doesn't exist
            db_dir = os.path.dirname(self.db_file)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)

            self.conn = sqlite3.connect(self.db_file)
            self.conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')
            self.conn.commit()
            logger.info("Database initialized at %s", self.db_file)
        except (sqlite3.Error, OSError) as e:
            self.conn = None
            raise PersistenceUnavailable(f"Database initialization error: {e}") from e

    def _connection(self):
        if not self.conn:
            self.initialize_db()
        return self.conn

    def get(self, key):
        try:
            row = self._connection().execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Error reading {key}: {e}") from e
        return row[0] if row else None

    def set(self, key, value):
        try:
            conn = self._connection()
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)", (key, value)
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Error writing {key}: {e}") from e

    def delete(self, key):
        try:
            conn = self._connection()
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Error deleting {key}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None


class GameStorage:
    """
    Reads and writes game history, the resumable game, aggregate
    performance metrics and preferences.

    No method raises for storage problems: failures are logged and the
    call falls back to the documented default.
    """

    def __init__(self, store: KeyValueStore, history_limit: int = HISTORY_LIMIT):
        self.store = store
        self.history_limit = history_limit

    def _load(self, key: str) -> Optional[Any]:
        """Decoded JSON for key, or None if absent, unreadable or corrupt."""
        try:
            raw = self.store.get(key)
        except PersistenceUnavailable as e:
            logger.error("Failed to load %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Discarding malformed %s data: %s", key, e)
            return None

    def _save(self, key: str, value: Any) -> bool:
        try:
            self.store.set(key, json.dumps(value))
            return True
        except PersistenceUnavailable as e:
            logger.error("Failed to save %s: %s", key, e)
            return False

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except PersistenceUnavailable as e:
            logger.error("Failed to clear %s: %s", key, e)

    def save_game_session(self, session: SessionRecord) -> PerformanceMetrics:
        """
        Append a completed session to the history and update the metrics.

        Returns:
            The updated metrics (kept in memory even if they could not be saved)
        """
        history = self.load_game_history()
        history.append(session)
        history = history[-self.history_limit:]
        self._save(HISTORY_KEY, [record.to_dict() for record in history])
        return self.update_performance_metrics(session)

    def load_game_history(self) -> List[SessionRecord]:
        data = self._load(HISTORY_KEY)
        if data is None:
            return []
        try:
            if not isinstance(data, list):
                raise MalformedStoredData(f"expected a list, got {type(data).__name__}")
            return [SessionRecord.from_dict(item) for item in data]
        except (MalformedStoredData, AttributeError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed history: %s", e)
            return []

    def save_current_game(self, snapshot: Dict[str, Any]) -> None:
        self._save(CURRENT_GAME_KEY, snapshot)

    def load_current_game(self) -> Optional[Dict[str, Any]]:
        data = self._load(CURRENT_GAME_KEY)
        if data is not None and not isinstance(data, dict):
            logger.warning("Discarding malformed current game snapshot")
            return None
        return data

    def clear_current_game(self) -> None:
        self._delete(CURRENT_GAME_KEY)

    def update_performance_metrics(self, session: SessionRecord) -> PerformanceMetrics:
        metrics = self.load_performance_metrics()
        metrics.record(session)
        self._save(PERFORMANCE_STATS_KEY, metrics.to_dict())
        return metrics

    def load_performance_metrics(self) -> PerformanceMetrics:
        data = self._load(PERFORMANCE_STATS_KEY)
        if data is None:
            return PerformanceMetrics()
        try:
            if not isinstance(data, dict):
                raise MalformedStoredData(f"expected an object, got {type(data).__name__}")
            return PerformanceMetrics.from_dict(data)
        except (MalformedStoredData, AttributeError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed performance stats: %s", e)
            return PerformanceMetrics()

    def save_preferences(self, preferences: Preferences) -> None:
        self._save(PREFERENCES_KEY, preferences.to_dict())

    def load_preferences(self) -> Preferences:
        data = self._load(PREFERENCES_KEY)
        if not isinstance(data, dict):
            return Preferences()
        return Preferences.from_dict(data)

    def clear_all_data(self) -> None:
        for key in STORAGE_KEYS:
            self._delete(key)

    def export_data(self) -> str:
        """Everything stored, as one pretty-printed JSON document."""
        data = {
            "history": [record.to_dict() for record in self.load_game_history()],
            "current_game": self.load_current_game(),
            "metrics": self.load_performance_metrics().to_dict(),
            "preferences": self.load_preferences().to_dict(),
        }
        return json.dumps(data, indent=2)

    def import_data(self, json_data: str) -> bool:
        """
        Replace stored data with the sections present in an export.

        Returns:
            True if the document was valid and every section was written
        """
        try:
            data = json.loads(json_data)
        except ValueError as e:
            logger.error("Failed to import data: %s", e)
            return False
        if not isinstance(data, dict):
            logger.error("Failed to import data: expected a JSON object")
            return False
        sections = {"history": list, "current_game": dict, "metrics": dict, "preferences": dict}
        for name, expected in sections.items():
            value = data.get(name)
            if value is not None and not isinstance(value, expected):
                logger.error("Failed to import data: %s must be a JSON %s", name,
                             "array" if expected is list else "object")
                return False

        written = True
        if data.get("history"):
            written &= self._save(HISTORY_KEY, data["history"][-self.history_limit:])
        if data.get("current_game"):
            written &= self._save(CURRENT_GAME_KEY, data["current_game"])
        if data.get("metrics"):
            written &= self._save(PERFORMANCE_STATS_KEY, data["metrics"])
        if data.get("preferences"):
            written &= self._save(PREFERENCES_KEY, data["preferences"])
        return written


def open_storage(db_file=DB_FILE) -> GameStorage:
    """
    Open the game storage on an SQLite file.

    Falls back to an in-memory store if the database cannot be opened, so
    the game stays playable without persistence.
    """
    try:
        store = SQLiteStore(db_file)
    except PersistenceUnavailable as e:
        logger.error("%s; continuing without saved data", e)
        store = MemoryStore()
    return GameStorage(store)
