"""Errors raised while ingesting logins for impossible travel detection."""


class TravelDetectionError(Exception):
    """Base class for travel detection failures."""
    pass


class InvalidLoginRequestError(TravelDetectionError):
    """Exception raised when a login payload fails validation."""
    pass


class GeoResolutionError(TravelDetectionError):
    """Exception raised when an IP address cannot be geolocated."""

    def __init__(self, ip: str, reason: str = "address not found"):
        self.ip = ip
        self.reason = reason
        super().__init__(f"Could not resolve location for {ip}: {reason}")


class DuplicateEventError(TravelDetectionError):
    """Exception raised when an event id has already been recorded."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Login event already recorded: {event_id}")


class StorageUnavailableError(TravelDetectionError):
    """Exception raised when the login store backend fails."""
    pass
