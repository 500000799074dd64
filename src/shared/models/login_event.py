"""
Login Event Schema for Impossible Travel Detection

This module defines the records that flow through the travel detector:
- LoginRequest: the decoded wire payload, before geolocation
- LoginEvent: a geolocated login, frozen at ingestion time

Locations are resolved once, when the login is first ingested, and are never
re-resolved afterwards.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LoginRequest:
    """A login as submitted by a caller, prior to geolocation.

    Attributes:
        username: Account the login belongs to
        unix_timestamp: Seconds since epoch
        event_uuid: Caller-supplied unique identifier for the login
        ip_address: Dotted-quad IPv4 source address
    """
    username: str
    unix_timestamp: int
    event_uuid: str
    ip_address: str


@dataclass(frozen=True)
class LoginEvent:
    """A single authentication event with its resolved location.

    Attributes:
        username: Account identifier; groups events for adjacency comparison
        timestamp: Seconds since epoch
        event_id: Globally unique event identifier
        source_ip: Dotted-quad IPv4 source address
        latitude: Resolved latitude in degrees
        longitude: Resolved longitude in degrees
        accuracy_radius: Resolver-reported uncertainty radius in km (informational)
    """
    username: str
    timestamp: int
    event_id: str
    source_ip: str
    latitude: float
    longitude: float
    accuracy_radius: int = 0

    @property
    def sort_key(self):
        """Ordering key used by stores and adjacency selection."""
        return (self.timestamp, self.event_id)

