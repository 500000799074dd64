"""Shared data models for the travel detector."""

from .login_event import (
    LoginEvent,
    LoginRequest,
)

__all__ = [
    "LoginEvent",
    "LoginRequest",
]
