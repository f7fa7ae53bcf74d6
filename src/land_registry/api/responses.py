"""
land_registry.api.responses

Certified JSON responses: the body is signed with the registry root key so clients can
verify query results came from this registry.
"""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from land_registry.certification import CERTIFICATE_HEADER, certify
from land_registry.settings import Settings


def certified(content: Any, *, settings: Settings, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(content=jsonable_encoder(content), status_code=status_code)
    response.headers[CERTIFICATE_HEADER] = certify(
        bytes(response.body), root_key=settings.registry_root_key
    )
    return response
