"""Membership lookup with an explicit, injected staleness policy.

"Which tenant does this identity belong to, and as what?" is answered by the
store. While the store is unavailable, :class:`MembershipResolver` answers
from :class:`MembershipCache` instead and says so in the result.

Cache layers:
    L1: In-memory (cachetools.TTLCache, per-process)
    L2: Redis (optional, shared across processes)

Cache key format: identity:{identity_id}:membership

L2 failures are logged and treated as misses; they never fail a lookup.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from cachetools import TTLCache  # type: ignore[import-untyped]
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from redis.exceptions import RedisError

from rollcall.foundation.application.resolution import Resolved, resolve
from rollcall.foundation.domain.roles import Role

if TYPE_CHECKING:
    from rollcall.domain.identity.records import ProfileRecord

logger = logging.getLogger(__name__)

_L2_ERRORS = (RedisError, OSError)


class MembershipCacheSettings(BaseSettings):
    """Staleness policy for cached memberships.

    Environment Variables:
        MEMBERSHIP_CACHE_MAXSIZE: Maximum L1 entries (default: 10000)
        MEMBERSHIP_CACHE_TTL_SECONDS: L1 TTL (default: 60)
        MEMBERSHIP_CACHE_L2_TTL_SECONDS: Redis TTL (default: 900)
        MEMBERSHIP_CACHE_USE_REDIS: Enable the shared L2 layer (default: false)
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMBERSHIP_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    maxsize: int = Field(default=10_000, ge=1, description="Maximum L1 entries")
    ttl_seconds: int = Field(default=60, ge=1, description="L1 time-to-live")
    l2_ttl_seconds: int = Field(default=900, ge=1, description="Redis time-to-live")
    use_redis: bool = Field(default=False, description="Enable the shared Redis layer")


@dataclass(frozen=True, slots=True)
class Membership:
    """The tenant and role an identity holds."""

    identity_id: UUID
    tenant_id: UUID
    role: Role

    @classmethod
    def from_profile(cls, profile: ProfileRecord) -> Membership:
        return cls(identity_id=profile.identity_id, tenant_id=profile.tenant_id, role=profile.role)

    def to_json(self) -> str:
        return json.dumps(
            {
                "identity_id": str(self.identity_id),
                "tenant_id": str(self.tenant_id),
                "role": self.role.value,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> Membership:
        data = json.loads(raw)
        return cls(
            identity_id=UUID(data["identity_id"]),
            tenant_id=UUID(data["tenant_id"]),
            role=Role(data["role"]),
        )


class ProfileLookup(Protocol):
    """Read access to profiles by identity."""

    async def get_profile(self, identity_id: UUID) -> ProfileRecord | None: ...


class MembershipCache:
    """Two-level membership cache.

    Args:
        maxsize: Maximum L1 cache entries.
        ttl: L1 TTL in seconds.
        l2_ttl: L2 TTL in seconds.
        redis_client: Optional async Redis client. If None, L2 is disabled.
    """

    def __init__(
        self,
        maxsize: int = 10_000,
        ttl: int = 60,
        l2_ttl: int = 900,
        redis_client: Any | None = None,
    ) -> None:
        self._l1: TTLCache[str, Membership] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._l2_ttl = l2_ttl
        self._redis = redis_client

    @classmethod
    def from_settings(
        cls, settings: MembershipCacheSettings, redis_client: Any | None = None
    ) -> MembershipCache:
        return cls(
            maxsize=settings.maxsize,
            ttl=settings.ttl_seconds,
            l2_ttl=settings.l2_ttl_seconds,
            redis_client=redis_client if settings.use_redis else None,
        )

    @staticmethod
    def _l2_failed(operation: str, exc: Exception) -> None:
        logger.warning(
            "membership_cache_l2_failed",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )

    @staticmethod
    def _cache_key(identity_id: UUID) -> str:
        return f"identity:{identity_id}:membership"

    async def get(self, identity_id: UUID) -> Membership | None:
        """Get from L1, then L2. An L2 hit is promoted to L1."""
        key = self._cache_key(identity_id)
        cached: Membership | None = self._l1.get(key)
        if cached is not None:
            return cached

        if self._redis is not None:
            try:
                raw = await self._redis.get(key)
            except _L2_ERRORS as exc:
                self._l2_failed("get", exc)
                return None
            if raw is not None:
                membership = Membership.from_json(raw)
                self._l1[key] = membership
                return membership
        return None

    async def set(self, membership: Membership) -> None:
        key = self._cache_key(membership.identity_id)
        self._l1[key] = membership
        if self._redis is not None:
            try:
                await self._redis.set(key, membership.to_json(), ex=self._l2_ttl)
            except _L2_ERRORS as exc:
                self._l2_failed("set", exc)

    async def invalidate(self, identity_id: UUID) -> None:
        key = self._cache_key(identity_id)
        self._l1.pop(key, None)
        if self._redis is not None:
            try:
                await self._redis.delete(key)
            except _L2_ERRORS as exc:
                self._l2_failed("delete", exc)


class MembershipResolver:
    """Resolves memberships from the store, falling back to the cache.

    Successful store answers refresh the cache; a store answer of "no
    membership" evicts any cached entry. Results carry their source, so
    callers can tell a stale answer from a fresh one.

    Args:
        profiles: Authoritative profile store.
        cache: Optional cache used only while the store is unavailable.
    """

    def __init__(self, profiles: ProfileLookup, cache: MembershipCache | None = None) -> None:
        self._profiles = profiles
        self._cache = cache

    async def lookup(self, identity_id: UUID) -> Resolved[Membership]:
        async def primary() -> Membership | None:
            profile = await self._profiles.get_profile(identity_id)
            if self._cache is None:
                return Membership.from_profile(profile) if profile is not None else None
            if profile is None:
                await self._cache.invalidate(identity_id)
                return None
            membership = Membership.from_profile(profile)
            await self._cache.set(membership)
            return membership

        fallback = partial(self._cache.get, identity_id) if self._cache is not None else None
        result = await resolve(primary, fallback)
        if result.is_stale:
            logger.info("membership_served_from_cache", extra={"identity_id": str(identity_id)})
        return result
