"""
land_registry.certification

Response certificates binding a registry response body to the registry root key.

The registry attaches `x-registry-certificate` (an HS256 JWS over the body digest) to
certified query responses; clients verify it against their installed root of trust.
"""

from __future__ import annotations

import hashlib
import hmac

import jwt
from jwt import InvalidTokenError

CERTIFICATE_HEADER = "x-registry-certificate"
_ALG = "HS256"


def certify(body: bytes, *, root_key: str) -> str:
    return jwt.encode({"sha256": hashlib.sha256(body).hexdigest()}, root_key, algorithm=_ALG)


def verify(body: bytes, certificate: str, *, root_key: str) -> bool:
    try:
        claims = jwt.decode(certificate, root_key, algorithms=[_ALG])
    except InvalidTokenError:
        return False
    expected = hashlib.sha256(body).hexdigest()
    return hmac.compare_digest(str(claims.get("sha256", "")), expected)
