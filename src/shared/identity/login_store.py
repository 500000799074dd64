"""Login event store for impossible travel detection.

Durably records geolocated login events and returns a user's logins ordered
by time. Event ids are unique across the whole store; inserting a known id
raises DuplicateEventError.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.login_event import LoginEvent
from .exceptions import DuplicateEventError

logger = logging.getLogger(__name__)


class LoginStore(ABC):
    """Abstract base class for login event storage.

    Implementations should handle persistence to SQLite, DynamoDB, etc.
    """

    @abstractmethod
    def insert(self, event: LoginEvent) -> None:
        """Record a login event.

        Args:
            event: Geolocated login to store

        Raises:
            DuplicateEventError: If the event id is already stored
            StorageUnavailableError: If the backend fails
        """
        pass

    @abstractmethod
    def get_login(self, event_id: str) -> Optional[LoginEvent]:
        """Get a login by event id.

        Args:
            event_id: Event id to retrieve

        Returns:
            LoginEvent if found, None otherwise
        """
        pass

    @abstractmethod
    def get_logins_for_user(self, username: str) -> List[LoginEvent]:
        """Get every login recorded for a user.

        Args:
            username: Account to look up

        Returns:
            Logins ascending by (timestamp, event_id)
        """
        pass

    def get_history(self, event: LoginEvent) -> List[LoginEvent]:
        """Get the user's other logins, excluding ``event`` itself."""
        return [
            login
            for login in self.get_logins_for_user(event.username)
            if login.event_id != event.event_id
        ]

    def close(self) -> None:
        """Release backend resources."""
        pass


class InMemoryLoginStore(LoginStore):
    """In-memory implementation of login storage for development/testing."""

    def __init__(self):
        self._events: Dict[str, LoginEvent] = {}
        self._user_events: Dict[str, List[str]] = {}  # username -> [event_ids]
        self._lock = threading.Lock()

    def insert(self, event: LoginEvent) -> None:
        """Record a login event."""
        with self._lock:
            if event.event_id in self._events:
                raise DuplicateEventError(event.event_id)

            self._events[event.event_id] = event
            self._user_events.setdefault(event.username, []).append(event.event_id)

        logger.debug(f"Stored login {event.event_id} for {event.username}")

    def get_login(self, event_id: str) -> Optional[LoginEvent]:
        """Get a login by event id."""
        return self._events.get(event_id)

    def get_logins_for_user(self, username: str) -> List[LoginEvent]:
        """Get every login recorded for a user, oldest first."""
        with self._lock:
            logins = [self._events[eid] for eid in self._user_events.get(username, [])]
        return sorted(logins, key=lambda e: e.sort_key)

    def __len__(self) -> int:
        return len(self._events)
