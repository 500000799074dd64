"""Impossible travel detection components.

This package provides:
- Adjacent login selection
- Travel analysis and classification
- Login event storage (in-memory, SQLite, DynamoDB)
- Login ingestion orchestration
"""

from .adjacency import (
    AdjacentLogins,
    select_adjacent_logins,
)
from .travel_analyzer import (
    GeoUtils,
    ImpossibleTravelAnalyzer,
    TravelVerdict,
)
from .login_store import (
    LoginStore,
    InMemoryLoginStore,
)
from .exceptions import (
    TravelDetectionError,
    InvalidLoginRequestError,
    GeoResolutionError,
    DuplicateEventError,
    StorageUnavailableError,
)
from .config import TravelDetectionConfig, load_config
from .validation import (
    is_valid_ipv4,
    parse_login_body,
    validate_login_request,
)
from .ingestion import (
    LoginIngestionService,
    TravelAssessment,
    build_ingestion_service,
    build_login_store,
)


__all__ = [
    # Adjacency
    "AdjacentLogins",
    "select_adjacent_logins",
    # Travel analysis
    "GeoUtils",
    "ImpossibleTravelAnalyzer",
    "TravelVerdict",
    # Storage
    "LoginStore",
    "InMemoryLoginStore",
    # Errors
    "TravelDetectionError",
    "InvalidLoginRequestError",
    "GeoResolutionError",
    "DuplicateEventError",
    "StorageUnavailableError",
    # Configuration
    "TravelDetectionConfig",
    "load_config",
    # Validation
    "is_valid_ipv4",
    "parse_login_body",
    "validate_login_request",
    # Ingestion
    "LoginIngestionService",
    "TravelAssessment",
    "build_ingestion_service",
    "build_login_store",
]
