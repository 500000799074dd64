"""SQLite implementation of login store for single-node deployments."""

import logging
import sqlite3
import threading
from typing import List, Optional

from ..models.login_event import LoginEvent
from .exceptions import DuplicateEventError, StorageUnavailableError
from .login_store import LoginStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS logins (
    event_uuid TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    unix_timestamp INTEGER NOT NULL,
    ip_address TEXT NOT NULL,
    lat REAL NOT NULL,
    lon REAL NOT NULL,
    radius INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_logins_username_ts
    ON logins (username, unix_timestamp, event_uuid);
"""

_COLUMNS = "username, unix_timestamp, event_uuid, ip_address, lat, lon, radius"


class SQLiteLoginStore(LoginStore):
    """SQLite implementation of login storage.

    Table schema:
    - PK: event_uuid
    - Index: (username, unix_timestamp, event_uuid) for ordered history reads
    """

    def __init__(self, db_path: str = "./data.db"):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            logger.error(f"Error opening login database {db_path}: {e}")
            raise StorageUnavailableError(f"Cannot open {db_path}: {e}") from e

    @staticmethod
    def _row_to_event(row) -> LoginEvent:
        username, timestamp, event_id, ip, lat, lon, radius = row
        return LoginEvent(
            username=username,
            timestamp=timestamp,
            event_id=event_id,
            source_ip=ip,
            latitude=lat,
            longitude=lon,
            accuracy_radius=radius,
        )

    def insert(self, event: LoginEvent) -> None:
        """Record a login event."""
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO logins ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        event.username,
                        event.timestamp,
                        event.event_id,
                        event.source_ip,
                        event.latitude,
                        event.longitude,
                        event.accuracy_radius,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateEventError(event.event_id) from e
        except sqlite3.Error as e:
            logger.error(f"Error storing login {event.event_id}: {e}")
            raise StorageUnavailableError(str(e)) from e

        logger.debug(f"Stored login {event.event_id} for {event.username}")

    def get_login(self, event_id: str) -> Optional[LoginEvent]:
        """Get a login by event id."""
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM logins WHERE event_uuid = ?",
                    (event_id,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error reading login {event_id}: {e}")
            raise StorageUnavailableError(str(e)) from e

        return self._row_to_event(row) if row else None

    def get_logins_for_user(self, username: str) -> List[LoginEvent]:
        """Get every login recorded for a user, oldest first."""
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM logins WHERE username = ? "
                    "ORDER BY unix_timestamp ASC, event_uuid ASC",
                    (username,),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error reading logins for {username}: {e}")
            raise StorageUnavailableError(str(e)) from e

        return [self._row_to_event(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
