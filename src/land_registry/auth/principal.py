"""
land_registry.auth.principal

Opaque, globally unique caller identity (`PrincipalId`).

Responsibilities:
- Canonical textual form (checksummed base32, dash-grouped) and strict parsing.
- Derivation of self-authenticating principals from a public key.
- Pydantic integration so models can declare `PrincipalId` fields directly.
"""

from __future__ import annotations

import base64
import hashlib
import zlib
from dataclasses import dataclass
from typing import Any

from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema

_MAX_BYTES = 29
_SELF_AUTHENTICATING_TAG = b"\x02"
_ANONYMOUS = b"\x04"


class InvalidPrincipal(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class PrincipalId:
    """
    Immutable caller reference. Equality and hashing follow the raw bytes,
    so two parses of the same text compare equal.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) > _MAX_BYTES:
            raise InvalidPrincipal(f"principal longer than {_MAX_BYTES} bytes")

    @classmethod
    def from_text(cls, text: str) -> PrincipalId:
        cleaned = text.strip().lower()
        compact = cleaned.replace("-", "")
        if not compact:
            raise InvalidPrincipal("empty principal text")
        padded = compact.upper() + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except ValueError as e:
            raise InvalidPrincipal(f"not base32: {text!r}") from e
        if len(decoded) < 4:
            raise InvalidPrincipal(f"principal too short: {text!r}")

        checksum, raw = decoded[:4], decoded[4:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise InvalidPrincipal(f"checksum mismatch: {text!r}")

        principal = cls(raw)
        # Reject non-canonical spellings (wrong grouping, stray dashes).
        if principal.text != cleaned:
            raise InvalidPrincipal(f"non-canonical principal text: {text!r}")
        return principal

    @classmethod
    def self_authenticating(cls, public_key: bytes) -> PrincipalId:
        return cls(hashlib.sha224(public_key).digest() + _SELF_AUTHENTICATING_TAG)

    @classmethod
    def anonymous(cls) -> PrincipalId:
        return cls(_ANONYMOUS)

    @property
    def is_anonymous(self) -> bool:
        return self.raw == _ANONYMOUS

    @property
    def text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"PrincipalId({self.text!r})"

    @classmethod
    def _coerce(cls, value: Any) -> PrincipalId:
        if isinstance(value, PrincipalId):
            return value
        if isinstance(value, str):
            return cls.from_text(value)
        raise InvalidPrincipal(f"expected principal text, got {type(value).__name__}")

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: GetJsonSchemaHandler
    ) -> JsonSchemaValue:
        return {"type": "string", "format": "principal"}


def is_valid_principal_text(text: str) -> bool:
    try:
        PrincipalId.from_text(text)
    except InvalidPrincipal:
        return False
    return True


# --- Module Notes -----------------------------------------------------------
# The textual format matches self-authenticating ledger principals: CRC32 prefix, base32,
# groups of five. Parsing is strict so a typo in a transfer recipient is caught locally.
