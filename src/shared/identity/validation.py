"""Validation of incoming login payloads.

Payloads are checked here, at the boundary, so the detection logic only ever
sees well-formed logins.
"""

import json
import re
from typing import Any, Dict, Union

from ..models.login_event import LoginRequest
from .exceptions import InvalidLoginRequestError

# Four dot-separated octets, each 0-255, ASCII digits only
IPV4_PATTERN = re.compile(
    r"(?:(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}"
    r"(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)",
    re.ASCII,
)

# Largest value a signed 64-bit unix timestamp can hold
MAX_UNIX_TIMESTAMP = 2 ** 63 - 1

REQUIRED_FIELDS = ("username", "unix_timestamp", "event_uuid", "ip_address")


def is_valid_ipv4(ip: Any) -> bool:
    """Check that ``ip`` is a canonical dotted-quad IPv4 address."""
    return isinstance(ip, str) and IPV4_PATTERN.fullmatch(ip) is not None


def parse_login_body(body: Union[str, bytes, None]) -> Dict[str, Any]:
    """Decode a JSON request body into a dictionary.

    Raises:
        InvalidLoginRequestError: If the body is empty or not a JSON object
    """
    if not body:
        raise InvalidLoginRequestError("Request body is empty")

    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise InvalidLoginRequestError(f"Could not parse request body as JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidLoginRequestError("Request body must be a JSON object")
    return payload


def validate_login_request(payload: Dict[str, Any]) -> LoginRequest:
    """Validate a decoded login payload.

    Args:
        payload: Dictionary with username, unix_timestamp, event_uuid, ip_address

    Returns:
        LoginRequest built from the payload

    Raises:
        InvalidLoginRequestError: On a missing or malformed field
    """
    missing = [name for name in REQUIRED_FIELDS if name not in payload]
    if missing:
        raise InvalidLoginRequestError(f"Missing required fields: {', '.join(missing)}")

    username = payload["username"]
    if not isinstance(username, str) or not username:
        raise InvalidLoginRequestError("username must be a non-empty string")

    event_uuid = payload["event_uuid"]
    if not isinstance(event_uuid, str) or not event_uuid:
        raise InvalidLoginRequestError("event_uuid must be a non-empty string")

    timestamp = payload["unix_timestamp"]
    # bool is an int subclass
    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
        raise InvalidLoginRequestError("unix_timestamp must be a non-negative integer")
    if timestamp > MAX_UNIX_TIMESTAMP:
        raise InvalidLoginRequestError(
            f"unix_timestamp must not exceed {MAX_UNIX_TIMESTAMP}"
        )

    ip_address = payload["ip_address"]
    if not is_valid_ipv4(ip_address):
        raise InvalidLoginRequestError(f"ip_address is not a valid IPv4 address: {ip_address!r}")

    return LoginRequest(
        username=username,
        unix_timestamp=timestamp,
        event_uuid=event_uuid,
        ip_address=ip_address,
    )
