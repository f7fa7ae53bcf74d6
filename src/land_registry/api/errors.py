"""
land_registry.api.errors

Translation of service-layer rule violations into HTTP errors.

Routers never build error bodies themselves; they wrap service calls with `violations()`.
The body is `{"detail": {"kind": ..., "message": ...}}` so clients can recover the kind exactly.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
)

from land_registry.auth.principal import InvalidPrincipal, PrincipalId
from land_registry.errors import BusinessErrorKind
from land_registry.services.registry_service import RegistryRuleViolation

_STATUS_BY_KIND: dict[BusinessErrorKind, int] = {
    BusinessErrorKind.unauthorized: HTTP_403_FORBIDDEN,
    BusinessErrorKind.not_found: HTTP_404_NOT_FOUND,
    BusinessErrorKind.invalid_state: HTTP_409_CONFLICT,
    BusinessErrorKind.validation_failed: HTTP_400_BAD_REQUEST,
}


def http_error(
    kind: BusinessErrorKind, message: str, *, resource: str | None = None
) -> HTTPException:
    detail = {"kind": kind.value, "message": message}
    if resource is not None:
        # Names the missing record so clients can tell it from an unknown route or service.
        detail["resource"] = resource
    return HTTPException(status_code=_STATUS_BY_KIND[kind], detail=detail)


@contextmanager
def violations() -> Iterator[None]:
    try:
        yield
    except RegistryRuleViolation as e:
        raise http_error(e.kind, e.message) from e


def parse_principal(text: str) -> PrincipalId:
    """Path/query principal text -> `PrincipalId`, or a `ValidationFailed` error."""

    try:
        return PrincipalId.from_text(text)
    except InvalidPrincipal as e:
        raise http_error(BusinessErrorKind.validation_failed, str(e)) from e
