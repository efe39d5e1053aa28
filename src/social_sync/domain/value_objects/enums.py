from __future__ import annotations

from enum import StrEnum


class AuthErrorCode(StrEnum):
    INVALID_CREDENTIAL = "invalid_credential"
    TOO_MANY_REQUESTS = "too_many_requests"
    USER_DISABLED = "user_disabled"
    NETWORK_UNREACHABLE = "network_unreachable"
    EMAIL_IN_USE = "email_in_use"
    WEAK_PASSWORD = "weak_password"
    UNKNOWN = "unknown"


class AggregatorState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
