"""Context enrichment for login events.

Provides IP geolocation for incoming logins.
"""

from .geolocation import (
    GeoIPCache,
    GeoIPService,
    ResolvedLocation,
)

__all__ = [
    "GeoIPCache",
    "GeoIPService",
    "ResolvedLocation",
]
