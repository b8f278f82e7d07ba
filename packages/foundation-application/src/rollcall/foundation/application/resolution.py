"""Primary/fallback value resolution with explicit precedence.

Read paths that can tolerate slightly stale data (for example "which tenant
does this identity belong to") resolve through :func:`resolve` instead of
consulting ad hoc cached copies at each call site.

Precedence:
    1. The primary lookup is authoritative whenever it answers. An answer of
       ``None`` ("nothing there") is an answer and is returned as is.
    2. The fallback is consulted only when the primary raises one of the
       ``unavailable`` exception types.
    3. If there is no fallback, or the fallback has nothing, the primary's
       exception propagates.

Authorization decisions must not use a fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, TypeVar

from rollcall.foundation.domain.exceptions import ServiceUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResolutionSource(StrEnum):
    """Which side of :func:`resolve` produced the value."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class Resolved(Generic[T]):
    """A resolved value and where it came from."""

    value: T | None
    source: ResolutionSource

    @property
    def is_stale(self) -> bool:
        return self.source is ResolutionSource.FALLBACK


async def resolve(
    primary: Callable[[], Awaitable[T | None]],
    fallback: Callable[[], Awaitable[T | None]] | None = None,
    *,
    unavailable: tuple[type[BaseException], ...] = (ServiceUnavailableError,),
) -> Resolved[T]:
    """Resolve a value from ``primary``, falling back only when it is unavailable.

    Args:
        primary: Authoritative lookup.
        fallback: Lookup used while the primary is unavailable, typically an
            injected cache with its own staleness policy.
        unavailable: Exception types that mean "primary could not answer".

    Returns:
        The value and its source.

    Raises:
        Exception: The primary's error when no fallback value exists.
    """
    try:
        return Resolved(value=await primary(), source=ResolutionSource.PRIMARY)
    except unavailable as exc:
        if fallback is None:
            raise
        value = await fallback()
        if value is None:
            raise
        logger.warning(
            "resolution_used_fallback",
            extra={"error_type": type(exc).__name__},
        )
        return Resolved(value=value, source=ResolutionSource.FALLBACK)
