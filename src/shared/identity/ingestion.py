"""Login ingestion service for impossible travel detection.

Ties the pieces together for each incoming login:
1. Validate the payload
2. Resolve the source IP to a location
3. Persist the geolocated login
4. Fetch the user's other logins and select the adjacent ones
5. Evaluate travel into and out of the new login's location

The persist-then-fetch sequence is serialized per username so that two
concurrent logins for the same account see a consistent history.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Union

from ..models.login_event import LoginEvent, LoginRequest
from .adjacency import AdjacentLogins, select_adjacent_logins
from .config import TravelDetectionConfig
from .exceptions import DuplicateEventError
from .login_store import InMemoryLoginStore, LoginStore
from .travel_analyzer import ImpossibleTravelAnalyzer, TravelVerdict
from .validation import validate_login_request

logger = logging.getLogger(__name__)


def _access_summary(login: LoginEvent, verdict: TravelVerdict) -> Dict[str, Any]:
    return {
        "ip": login.source_ip,
        "speed": verdict.reported_speed(),
        "lat": login.latitude,
        "lon": login.longitude,
        "radius": login.accuracy_radius,
        "unix_timestamp": login.timestamp,
    }


@dataclass(frozen=True)
class TravelAssessment:
    """Outcome of ingesting a single login.

    Attributes:
        event: The ingested login
        adjacent: Logins immediately before and after it
        inbound: Verdict for travel from the previous login to this one
        outbound: Verdict for travel from this login to the next one
        duplicate: Whether the event id had already been recorded
    """

    event: LoginEvent
    adjacent: AdjacentLogins
    inbound: Optional[TravelVerdict] = None
    outbound: Optional[TravelVerdict] = None
    duplicate: bool = False

    @property
    def is_suspicious(self) -> bool:
        return any(v is not None and v.suspicious for v in (self.inbound, self.outbound))

    def to_response(self) -> Dict[str, Any]:
        """Render the wire response for this assessment."""
        response: Dict[str, Any] = {
            "currentGeo": {
                "lat": self.event.latitude,
                "lon": self.event.longitude,
                "radius": self.event.accuracy_radius,
            },
        }

        if self.inbound is not None:
            response["travelToCurrentGeoSuspicious"] = self.inbound.suspicious
            response["precedingIpAccess"] = _access_summary(self.adjacent.previous, self.inbound)

        if self.outbound is not None:
            response["travelFromCurrentGeoSuspicious"] = self.outbound.suspicious
            response["subsequentIpAccess"] = _access_summary(self.adjacent.next, self.outbound)

        return response


class UserLockRegistry:
    """Hands out one lock per username.

    Entries are reference counted and dropped once no ingestion holds or
    waits on them, so idle usernames do not accumulate.
    """

    def __init__(self):
        self._entries: Dict[str, list] = {}  # username -> [lock, holders]
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, username: str) -> Iterator[None]:
        """Hold the lock for ``username`` for the duration of the block."""
        with self._guard:
            entry = self._entries.get(username)
            if entry is None:
                entry = self._entries[username] = [threading.Lock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[username]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class LoginIngestionService:
    """Ingests logins and evaluates them for impossible travel."""

    def __init__(
        self,
        store: Optional[LoginStore] = None,
        geo_resolver: Optional[Any] = None,
        analyzer: Optional[ImpossibleTravelAnalyzer] = None,
        duplicate_policy: str = "ignore",
    ):
        """Initialize LoginIngestionService.

        Args:
            store: Login storage (defaults to InMemoryLoginStore)
            geo_resolver: Object with ``resolve(ip)`` returning latitude,
                longitude and accuracy_radius
            analyzer: Travel analyzer (defaults to a 500 km/h threshold)
            duplicate_policy: ``ignore`` to re-evaluate a known event id,
                ``reject`` to raise DuplicateEventError
        """
        if geo_resolver is None:
            raise ValueError("geo_resolver is required")

        self.store = store if store is not None else InMemoryLoginStore()
        self.geo_resolver = geo_resolver
        self.analyzer = analyzer or ImpossibleTravelAnalyzer()
        self.duplicate_policy = duplicate_policy
        self._user_locks = UserLockRegistry()

    def ingest(self, payload: Union[Dict[str, Any], LoginRequest]) -> TravelAssessment:
        """Ingest one login and assess travel around it.

        Args:
            payload: Decoded request dictionary or an already-validated LoginRequest

        Returns:
            TravelAssessment for the login

        Raises:
            InvalidLoginRequestError: If the payload is malformed
            GeoResolutionError: If the source IP cannot be located
            DuplicateEventError: If the event id is known and policy is ``reject``
            StorageUnavailableError: If the store fails
        """
        request = payload if isinstance(payload, LoginRequest) else validate_login_request(payload)

        with self._user_locks.hold(request.username):
            event, duplicate = self._record(request)
            owned = event.username == request.username
            if owned:
                history = self.store.get_history(event)

        if not owned:
            # Event id already recorded under another account
            with self._user_locks.hold(event.username):
                history = self.store.get_history(event)

        assessment = self.assess(event, history, duplicate=duplicate)

        logger.info(
            f"Ingested login {event.event_id} for {event.username}: "
            f"{len(history)} prior records, suspicious={assessment.is_suspicious}"
        )
        if assessment.is_suspicious:
            logger.warning(
                f"Impossible travel detected for {event.username} at login {event.event_id}"
            )
        return assessment

    def assess(
        self, event: LoginEvent, history, duplicate: bool = False
    ) -> TravelAssessment:
        """Evaluate a stored login against the user's other logins."""
        adjacent = select_adjacent_logins(history, event)

        inbound = None
        if adjacent.previous is not None:
            inbound = self.analyzer.evaluate(adjacent.previous, event)

        outbound = None
        if adjacent.next is not None:
            outbound = self.analyzer.evaluate(event, adjacent.next)

        return TravelAssessment(
            event=event,
            adjacent=adjacent,
            inbound=inbound,
            outbound=outbound,
            duplicate=duplicate,
        )

    def _record(self, request: LoginRequest):
        """Persist the login, or return the stored copy of a known event id."""
        existing = self.store.get_login(request.event_uuid)
        if existing is not None:
            return self._handle_duplicate(request, existing), True

        location = self.geo_resolver.resolve(request.ip_address)
        event = LoginEvent(
            username=request.username,
            timestamp=request.unix_timestamp,
            event_id=request.event_uuid,
            source_ip=request.ip_address,
            latitude=location.latitude,
            longitude=location.longitude,
            accuracy_radius=location.accuracy_radius,
        )

        try:
            self.store.insert(event)
        except DuplicateEventError:
            # Same event id recorded concurrently under another username
            existing = self.store.get_login(request.event_uuid)
            if existing is None:
                raise
            return self._handle_duplicate(request, existing), True

        return event, False

    def _handle_duplicate(self, request: LoginRequest, existing: LoginEvent) -> LoginEvent:
        if self.duplicate_policy == "reject":
            raise DuplicateEventError(request.event_uuid)

        logger.warning(f"Login {request.event_uuid} already recorded, reusing stored record")
        return existing


def build_login_store(config: TravelDetectionConfig) -> LoginStore:
    """Create the login store selected by configuration."""
    if config.store_backend == "sqlite":
        from .login_store_sqlite import SQLiteLoginStore
        return SQLiteLoginStore(db_path=config.sqlite_path)

    if config.store_backend == "dynamodb":
        from .login_store_dynamodb import DynamoDBLoginStore
        return DynamoDBLoginStore(table_name=config.dynamodb_table, region=config.aws_region)

    return InMemoryLoginStore()


def build_ingestion_service(
    config: Optional[TravelDetectionConfig] = None,
    store: Optional[LoginStore] = None,
    geo_resolver: Optional[Any] = None,
) -> LoginIngestionService:
    """Create a LoginIngestionService wired from configuration.

    Args:
        config: Settings (defaults to TravelDetectionConfig())
        store: Overrides the configured store backend
        geo_resolver: Overrides the configured GeoIP service
    """
    config = config or TravelDetectionConfig()

    if geo_resolver is None:
        from ..enrichment.geolocation import GeoIPService
        geo_resolver = GeoIPService(
            maxmind_db_path=config.maxmind_db_path,
            maxmind_account_id=config.maxmind_account_id,
            maxmind_license_key=config.maxmind_license_key,
            cache_ttl_hours=config.geo_cache_ttl_hours,
        )

    return LoginIngestionService(
        store=store if store is not None else build_login_store(config),
        geo_resolver=geo_resolver,
        analyzer=ImpossibleTravelAnalyzer(
            suspicious_speed_kmh=config.suspicious_speed_kmh,
            earth_radius_km=config.earth_radius_km,
        ),
        duplicate_policy=config.duplicate_policy,
    )
