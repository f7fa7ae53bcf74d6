"""
land_registry.results

Discriminated success/error values for expected business outcomes.

Registry update methods return `Ok(value)` or `Err(error)` instead of raising, so callers
must branch explicitly on expected failures (not found, not authorized, revoked parcel...).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E


Result = Union[Ok[T], Err[E]]
