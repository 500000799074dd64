"""
Configuration for impossible travel detection.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

DUPLICATE_POLICIES = ("ignore", "reject")
STORE_BACKENDS = ("memory", "sqlite", "dynamodb")


@dataclass
class TravelDetectionConfig:
    """Configuration for login ingestion and travel classification."""

    # Classification settings
    suspicious_speed_kmh: float = 500.0
    earth_radius_km: float = 6371.0

    # Ingestion settings
    duplicate_policy: str = "ignore"

    # Storage settings
    store_backend: str = "sqlite"
    sqlite_path: str = "./data.db"
    dynamodb_table: str = "travel-detector-logins"
    aws_region: str = "us-east-1"

    # Geolocation settings
    maxmind_db_path: str = "./geo/GeoLite2-City.mmdb"
    maxmind_account_id: Optional[str] = None
    maxmind_license_key: Optional[str] = None
    geo_cache_ttl_hours: int = 24

    def __post_init__(self):
        """Validate settings."""
        if self.suspicious_speed_kmh < 0:
            raise ValueError("suspicious_speed_kmh must not be negative")
        if self.earth_radius_km <= 0:
            raise ValueError("earth_radius_km must be positive")
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(
                f"duplicate_policy must be one of {DUPLICATE_POLICIES}, "
                f"got {self.duplicate_policy!r}"
            )
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"store_backend must be one of {STORE_BACKENDS}, got {self.store_backend!r}"
            )

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]] = None) -> 'TravelDetectionConfig':
        """Create config from dictionary."""
        if not config_dict:
            return cls()

        return cls(
            suspicious_speed_kmh=float(config_dict.get('suspicious_speed_kmh', 500.0)),
            earth_radius_km=float(config_dict.get('earth_radius_km', 6371.0)),
            duplicate_policy=config_dict.get('duplicate_policy', 'ignore'),
            store_backend=config_dict.get('store_backend', 'sqlite'),
            sqlite_path=config_dict.get('sqlite_path', './data.db'),
            dynamodb_table=config_dict.get('dynamodb_table', 'travel-detector-logins'),
            aws_region=config_dict.get('aws_region', 'us-east-1'),
            maxmind_db_path=config_dict.get('maxmind_db_path', './geo/GeoLite2-City.mmdb'),
            maxmind_account_id=config_dict.get('maxmind_account_id'),
            maxmind_license_key=config_dict.get('maxmind_license_key'),
            geo_cache_ttl_hours=int(config_dict.get('geo_cache_ttl_hours', 24)),
        )

    @classmethod
    def from_environment(cls) -> 'TravelDetectionConfig':
        """Create config from environment variables."""
        return cls(
            suspicious_speed_kmh=float(os.environ.get('TRAVEL_SUSPICIOUS_SPEED_KMH', '500')),
            earth_radius_km=float(os.environ.get('TRAVEL_EARTH_RADIUS_KM', '6371')),
            duplicate_policy=os.environ.get('TRAVEL_DUPLICATE_POLICY', 'ignore').lower(),
            store_backend=os.environ.get('LOGIN_STORE_BACKEND', 'sqlite').lower(),
            sqlite_path=os.environ.get('LOGIN_DB_PATH', './data.db'),
            dynamodb_table=os.environ.get('LOGIN_EVENTS_TABLE', 'travel-detector-logins'),
            aws_region=os.environ.get('AWS_REGION', 'us-east-1'),
            maxmind_db_path=os.environ.get('MAXMIND_DB_PATH', './geo/GeoLite2-City.mmdb'),
            maxmind_account_id=os.environ.get('MAXMIND_ACCOUNT_ID'),
            maxmind_license_key=os.environ.get('MAXMIND_LICENSE_KEY'),
            geo_cache_ttl_hours=int(os.environ.get('GEO_CACHE_TTL_HOURS', '24')),
        )

    @classmethod
    def from_yaml(cls, path: str) -> 'TravelDetectionConfig':
        """Create config from a YAML file.

        The file may hold the settings at the top level or under a
        ``travel_detection`` key.
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data.get('travel_detection', data))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'suspicious_speed_kmh': self.suspicious_speed_kmh,
            'earth_radius_km': self.earth_radius_km,
            'duplicate_policy': self.duplicate_policy,
            'store_backend': self.store_backend,
            'sqlite_path': self.sqlite_path,
            'dynamodb_table': self.dynamodb_table,
            'aws_region': self.aws_region,
            'maxmind_db_path': self.maxmind_db_path,
            'maxmind_account_id': self.maxmind_account_id,
            'geo_cache_ttl_hours': self.geo_cache_ttl_hours,
        }


def load_config() -> TravelDetectionConfig:
    """Load config from ``TRAVEL_CONFIG_FILE`` if set, else the environment."""
    config_file = os.environ.get('TRAVEL_CONFIG_FILE')
    if config_file:
        return TravelDetectionConfig.from_yaml(config_file)
    return TravelDetectionConfig.from_environment()
