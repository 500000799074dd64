"""IP Geolocation Service.

Resolves IPv4 addresses to an approximate location using a MaxMind GeoIP2
City database, or the MaxMind web service when no database is configured.
"""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import geoip2.database
import geoip2.errors
import geoip2.webservice

from ..identity.exceptions import GeoResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLocation:
    """Location resolved for an IP address.

    Attributes:
        latitude: Degrees
        longitude: Degrees
        accuracy_radius: Uncertainty radius in kilometers
    """

    latitude: float
    longitude: float
    accuracy_radius: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "radius": self.accuracy_radius,
        }


class GeoIPCache:
    """In-memory cache for geolocation results."""

    def __init__(self, ttl_hours: int = 24, max_size: int = 10000):
        """Initialize cache.

        Args:
            ttl_hours: Time-to-live in hours
            max_size: Maximum cache entries
        """
        self.ttl = timedelta(hours=ttl_hours)
        self.max_size = max_size
        self._cache: Dict[str, tuple] = {}  # ip -> (ResolvedLocation, timestamp)
        self._lock = threading.Lock()

    def get(self, ip: str) -> Optional[ResolvedLocation]:
        """Get cached location."""
        with self._lock:
            entry = self._cache.get(ip)
            if entry is None:
                return None

            location, timestamp = entry
            if datetime.now(timezone.utc) - timestamp < self.ttl:
                return location
            del self._cache[ip]
        return None

    def put(self, ip: str, location: ResolvedLocation) -> None:
        """Cache location result."""
        with self._lock:
            # Evict oldest entry if at capacity
            if ip not in self._cache and len(self._cache) >= self.max_size:
                oldest_key = min(self._cache, key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]

            self._cache[ip] = (location, datetime.now(timezone.utc))

    def clear(self) -> None:
        """Clear cache."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


class GeoIPService:
    """Geolocation service backed by MaxMind GeoIP2."""

    def __init__(
        self,
        maxmind_db_path: Optional[str] = None,
        maxmind_account_id: Optional[str] = None,
        maxmind_license_key: Optional[str] = None,
        cache_ttl_hours: int = 24,
    ):
        """Initialize geolocation service.

        Args:
            maxmind_db_path: Path to MaxMind GeoIP2 City database file
            maxmind_account_id: MaxMind account ID for web service
            maxmind_license_key: MaxMind license key
            cache_ttl_hours: Cache TTL in hours
        """
        self.maxmind_db_path = maxmind_db_path or os.environ.get("MAXMIND_DB_PATH")
        self.maxmind_account_id = maxmind_account_id or os.environ.get("MAXMIND_ACCOUNT_ID")
        self.maxmind_license_key = maxmind_license_key or os.environ.get("MAXMIND_LICENSE_KEY")

        self.cache = GeoIPCache(ttl_hours=cache_ttl_hours)
        self._maxmind_reader = None
        self._maxmind_client = None

        self._init_maxmind()

    def _init_maxmind(self) -> None:
        """Initialize MaxMind GeoIP2 reader or client."""
        # Try local database first
        if self.maxmind_db_path and os.path.exists(self.maxmind_db_path):
            self._maxmind_reader = geoip2.database.Reader(self.maxmind_db_path)
            logger.info(f"Initialized MaxMind GeoIP2 database: {self.maxmind_db_path}")
            return

        if self.maxmind_db_path:
            logger.warning(f"MaxMind database not found: {self.maxmind_db_path}")

        if self.maxmind_account_id and self.maxmind_license_key:
            self._maxmind_client = geoip2.webservice.Client(
                int(self.maxmind_account_id),
                self.maxmind_license_key,
            )
            logger.info("Initialized MaxMind GeoIP2 web service client")

    @property
    def is_configured(self) -> bool:
        return self._maxmind_reader is not None or self._maxmind_client is not None

    def resolve(self, ip: str) -> ResolvedLocation:
        """Resolve an IP address to a location.

        Args:
            ip: IPv4 address to look up

        Returns:
            ResolvedLocation for the address

        Raises:
            GeoResolutionError: If the address is unknown or lookup fails
        """
        cached = self.cache.get(ip)
        if cached:
            return cached

        if self._maxmind_reader:
            location = self._lookup(self._maxmind_reader, ip, "maxmind_db")
        elif self._maxmind_client:
            location = self._lookup(self._maxmind_client, ip, "maxmind_web")
        else:
            raise GeoResolutionError(ip, "no geolocation provider configured")

        self.cache.put(ip, location)
        return location

    def _lookup(self, provider, ip: str, source: str) -> ResolvedLocation:
        """Lookup using a MaxMind reader or web service client."""
        try:
            response = provider.city(ip)
        except geoip2.errors.AddressNotFoundError as e:
            logger.info(f"{source} has no location for {ip}")
            raise GeoResolutionError(ip) from e
        except (geoip2.errors.GeoIP2Error, ValueError) as e:
            logger.warning(f"{source} lookup failed for {ip}: {e}")
            raise GeoResolutionError(ip, str(e)) from e

        location = response.location
        if location.latitude is None or location.longitude is None:
            raise GeoResolutionError(ip, "no coordinates in geolocation record")

        return ResolvedLocation(
            latitude=location.latitude,
            longitude=location.longitude,
            accuracy_radius=location.accuracy_radius or 0,
        )

    def close(self) -> None:
        """Close the underlying MaxMind reader or client."""
        if self._maxmind_reader:
            self._maxmind_reader.close()
        if self._maxmind_client:
            self._maxmind_client.close()
