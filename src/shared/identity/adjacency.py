"""Adjacent login selection for impossible travel analysis.

Finds the logins that immediately bracket a new login in time for the same
account. Only strictly earlier and strictly later logins qualify; a login
with exactly the same timestamp is never considered adjacent.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..models.login_event import LoginEvent


@dataclass(frozen=True)
class AdjacentLogins:
    """The nearest preceding and following logins around a new login."""

    previous: Optional[LoginEvent] = None
    next: Optional[LoginEvent] = None

    @property
    def is_empty(self) -> bool:
        return self.previous is None and self.next is None


def select_adjacent_logins(
    history: Iterable[LoginEvent], new_event: LoginEvent
) -> AdjacentLogins:
    """Select the logins immediately before and after ``new_event``.

    Ties on timestamp are broken on ``(timestamp, event_id)`` order: the
    previous login is the one with the greatest event id among those sharing
    the winning timestamp, the next login the one with the smallest.

    Args:
        history: Logins for the same username, in any order
        new_event: The login being evaluated; skipped if present in history

    Returns:
        AdjacentLogins with either side possibly absent

    Raises:
        ValueError: If history contains a login for another username
    """
    previous: Optional[LoginEvent] = None
    following: Optional[LoginEvent] = None

    for event in history:
        if event.username != new_event.username:
            raise ValueError(
                f"Login {event.event_id} belongs to {event.username!r}, "
                f"not {new_event.username!r}"
            )
        if event.event_id == new_event.event_id:
            continue

        if event.timestamp < new_event.timestamp:
            if previous is None or event.sort_key > previous.sort_key:
                previous = event
        elif event.timestamp > new_event.timestamp:
            if following is None or event.sort_key < following.sort_key:
                following = event

    return AdjacentLogins(previous=previous, next=following)
