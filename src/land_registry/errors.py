"""
land_registry.errors

Error taxonomy shared by the session, registry client and transfer workflow.

Responsibilities:
- Raised errors: `AuthError`, `NotInitialized`, `TransportError`.
- Returned errors: `BusinessError` (carried inside `results.Err`, never raised).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AuthErrorKind(enum.StrEnum):
    provider_failure = "ProviderFailure"
    cancelled = "Cancelled"
    session_expired = "SessionExpired"
    not_authenticated = "NotAuthenticated"


class AuthError(Exception):
    """
    Identity provider failure, cancelled login, or an expired/missing session.
    Surfaces to the caller for user-visible feedback.
    """

    def __init__(self, kind: AuthErrorKind, reason: str) -> None:
        super().__init__(f"{kind.value}: {reason}")
        self.kind = kind
        self.reason = reason


class NotInitialized(Exception):
    """Registry client used before a connection was bootstrapped."""

    def __init__(self, reason: str = "registry client has no connection") -> None:
        super().__init__(reason)
        self.reason = reason


class TransportError(Exception):
    """Network failure, timeout, server fault or unverifiable response. Always fatal to the call."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BusinessErrorKind(enum.StrEnum):
    unauthorized = "Unauthorized"
    not_found = "NotFound"
    invalid_state = "InvalidState"
    validation_failed = "ValidationFailed"


@dataclass(frozen=True, slots=True)
class BusinessError:
    kind: BusinessErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    @classmethod
    def unauthorized(cls, message: str) -> BusinessError:
        return cls(BusinessErrorKind.unauthorized, message)

    @classmethod
    def not_found(cls, message: str) -> BusinessError:
        return cls(BusinessErrorKind.not_found, message)

    @classmethod
    def invalid_state(cls, message: str) -> BusinessError:
        return cls(BusinessErrorKind.invalid_state, message)

    @classmethod
    def validation_failed(cls, message: str) -> BusinessError:
        return cls(BusinessErrorKind.validation_failed, message)


# --- Module Notes -----------------------------------------------------------
# `InvalidState` after a transfer approval/rejection means "someone else already decided
# this"; callers should refresh rather than retry.
