"""Impossible travel analysis for login events.

Computes the great-circle distance and elapsed time between two geolocated
logins, derives the implied travel speed, and classifies the pair as
suspicious when that speed exceeds a configurable threshold.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..models.login_event import LoginEvent

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class GeoUtils:
    """Utility methods for geographic calculations."""

    # Earth's mean radius in kilometers
    EARTH_RADIUS_KM = 6371.0

    @staticmethod
    def haversine_distance(
        lat1: float,
        lon1: float,
        lat2: float,
        lon2: float,
        radius_km: float = EARTH_RADIUS_KM,
    ) -> float:
        """Calculate the great-circle distance between two points on Earth.

        Args:
            lat1: Latitude of first point in degrees
            lon1: Longitude of first point in degrees
            lat2: Latitude of second point in degrees
            lon2: Longitude of second point in degrees
            radius_km: Sphere radius to use

        Returns:
            Distance in kilometers
        """
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (
            math.sin(delta_lat / 2) ** 2
            + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
        )
        # Rounding can push a fractionally past 1 for antipodal points
        a = min(1.0, a)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return radius_km * c

    @staticmethod
    def calculate_speed(distance_km: float, elapsed_seconds: float) -> float:
        """Calculate the implied travel speed in km/h.

        With no elapsed time, covering any distance is treated as unbounded
        speed and staying put as zero speed.

        Args:
            distance_km: Distance travelled
            elapsed_seconds: Non-negative time between the two points

        Returns:
            Speed in km/h, ``inf`` when distance is covered in zero time
        """
        if elapsed_seconds <= 0:
            return float("inf") if distance_km > 0 else 0.0

        hours = elapsed_seconds / SECONDS_PER_HOUR
        return distance_km / hours


@dataclass(frozen=True)
class TravelVerdict:
    """Result of comparing two logins for impossible travel.

    Attributes:
        origin: Reference login
        destination: Comparison login
        distance_km: Great-circle distance between the two locations
        elapsed_hours: Absolute time between the two logins
        speed_kmh: Implied speed; ``inf`` for distance covered in zero time
        suspicious: Whether the speed exceeds the configured threshold
    """

    origin: LoginEvent
    destination: LoginEvent
    distance_km: float
    elapsed_hours: float
    speed_kmh: float
    suspicious: bool

    @property
    def is_unbounded(self) -> bool:
        return math.isinf(self.speed_kmh)

    def reported_speed(self) -> Optional[int]:
        """Speed as reported on the wire: whole km/h, or None if unbounded."""
        if self.is_unbounded:
            return None
        return int(self.speed_kmh)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "origin_event_id": self.origin.event_id,
            "destination_event_id": self.destination.event_id,
            "distance_km": round(self.distance_km, 1),
            "elapsed_hours": round(self.elapsed_hours, 4),
            "speed_kmh": None if self.is_unbounded else round(self.speed_kmh, 1),
            "suspicious": self.suspicious,
        }


class ImpossibleTravelAnalyzer:
    """Classifies pairs of logins by the travel speed they imply.

    The default threshold of 500 km/h is roughly the cruising speed of a
    commercial jet. Speeds exactly at the threshold are not suspicious.
    """

    DEFAULT_SUSPICIOUS_SPEED_KMH = 500.0

    def __init__(
        self,
        suspicious_speed_kmh: Optional[float] = None,
        earth_radius_km: Optional[float] = None,
    ):
        """Initialize the analyzer.

        Args:
            suspicious_speed_kmh: Speed above which travel is suspicious
            earth_radius_km: Sphere radius for distance calculation
        """
        self.suspicious_speed_kmh = (
            self.DEFAULT_SUSPICIOUS_SPEED_KMH
            if suspicious_speed_kmh is None
            else float(suspicious_speed_kmh)
        )
        self.earth_radius_km = (
            GeoUtils.EARTH_RADIUS_KM if earth_radius_km is None else float(earth_radius_km)
        )

    def distance_between(self, a: LoginEvent, b: LoginEvent) -> float:
        """Great-circle distance in km between two logins."""
        return GeoUtils.haversine_distance(
            a.latitude, a.longitude, b.latitude, b.longitude, self.earth_radius_km
        )

    def is_suspicious_speed(self, speed_kmh: float) -> bool:
        return speed_kmh > self.suspicious_speed_kmh

    def evaluate(self, a: LoginEvent, b: LoginEvent) -> TravelVerdict:
        """Evaluate travel from login ``a`` to login ``b``.

        Args:
            a: Reference login
            b: Comparison login

        Returns:
            TravelVerdict for the pair
        """
        distance_km = self.distance_between(a, b)
        elapsed_seconds = abs(b.timestamp - a.timestamp)
        speed_kmh = GeoUtils.calculate_speed(distance_km, elapsed_seconds)
        suspicious = self.is_suspicious_speed(speed_kmh)

        if suspicious:
            logger.debug(
                f"Suspicious travel for {a.username}: {a.event_id} -> {b.event_id}, "
                f"{distance_km:.1f} km in {elapsed_seconds}s"
            )

        return TravelVerdict(
            origin=a,
            destination=b,
            distance_km=distance_km,
            elapsed_hours=elapsed_seconds / SECONDS_PER_HOUR,
            speed_kmh=speed_kmh,
            suspicious=suspicious,
        )
