"""Registry deciding which metadata provider owns an (entity, member) pair.

Manifesto:
    Several independently loaded copies of this library may run in one
    process, each with its own store. If each answered only for itself,
    metadata written through one copy would be invisible to the other, or
    worse, written twice. One registry per process arbitrates: the first
    provider to claim a pair owns it for the pair's lifetime.

Architecture:
    ::

        get_provider(entity, member)
            │
            ├── claim cache (IdentityTable: entity -> {member -> provider})
            │        hit  ───────────────────────────────► provider
            │
            ├── first.is_owner_of ─┐   fast path, no collection
            ├── second.is_owner_of ┘
            ├── rest (set, no defined order).is_owner_of
            ├── fallback.is_owner_of   (registry-unaware facility)
            │
            └── cache the answer; no answer stays Unresolved

        Per pair:  Unresolved ──set_provider / first answer──► Resolved(p)
                   (one way; set_provider with another p returns False)

Guardrails:
    ❌ DON'T: Treat ``set_provider(...) is False`` as a retryable condition
    ✅ DO: Raise OwnershipConflictError and roll back

    ❌ DON'T: Call provider or legacy-facility code while holding the registry lock
    ✅ DO: Snapshot providers under the lock, resolve outside it, install the
       answer with a compare-and-set so the first claim wins

    ❌ DON'T: Depend on resolution order among the third and later providers
    ✅ DO: Keep at most two providers when order matters

Tags:
    registry, provider, ownership, singleton, interoperability, reflector-core

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import sys
import threading
from typing import Any

from reflector.core.errors import (
    ProviderNotRegisteredError,
    RegistryFrozenError,
    describe,
)
from reflector.core.fallback import FallbackAdapter, is_legacy_facility
from reflector.core.identity import IdentityTable
from reflector.core.logging import get_logger
from reflector.core.settings import ReflectorSettings, get_settings
from reflector.core.store import MemberKey, MetadataProvider

logger = get_logger(__name__)


class ProviderRegistry:
    """Tracks metadata providers and the pairs each one owns.

    Usage:
        registry = ProviderRegistry()
        store = MetadataStore(registry)          # registers itself
        registry.get_provider(User, None)        # None until claimed
        registry.set_provider(User, None, store) # True
        registry.get_provider(User, None)        # store
    """

    def __init__(self, fallback: MetadataProvider | None = None):
        self._fallback = fallback
        self._first: MetadataProvider | None = None
        self._second: MetadataProvider | None = None
        self._rest: set[MetadataProvider] | None = None
        self._claims = IdentityTable()
        self._frozen = False
        self._lock = threading.RLock()

    @property
    def fallback(self) -> MetadataProvider | None:
        return self._fallback

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Refuse any further provider registration."""
        with self._lock:
            self._frozen = True
        logger.debug("registry_frozen", registry=describe(self))

    def register_provider(self, provider: MetadataProvider) -> None:
        """Add a provider; registering the same provider twice is a no-op.

        Raises:
            RegistryFrozenError: If the registry has been frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot add provider to a frozen registry").with_context(
                    provider=describe(provider)
                )

            if provider is self._fallback:
                return
            if self._first is None:
                self._first = provider
                slot = "first"
            elif provider is self._first:
                return
            elif self._second is None:
                self._second = provider
                slot = "second"
            elif provider is self._second:
                return
            else:
                if self._rest is None:
                    self._rest = set()
                self._rest.add(provider)
                slot = "rest"
        logger.debug("provider_registered", provider=describe(provider), slot=slot)

    def has_provider(self, provider: MetadataProvider) -> bool:
        with self._lock:
            return (
                provider is self._first
                or provider is self._second
                or (self._rest is not None and provider in self._rest)
            )

    def providers(self) -> list[MetadataProvider]:
        """Registered providers: first, second, then the rest in no set order."""
        with self._lock:
            result = [p for p in (self._first, self._second) if p is not None]
            if self._rest:
                result.extend(self._rest)
            return result

    def _resolve(self, entity: Any, member: MemberKey) -> MetadataProvider | None:
        # Provider code runs without the registry lock held.
        with self._lock:
            first, second = self._first, self._second
            rest = tuple(self._rest) if self._rest is not None else ()

        if first is not None:
            if first.is_owner_of(entity, member):
                return first
            if second is not None:
                if second.is_owner_of(entity, member):
                    return second
                for provider in rest:
                    if provider.is_owner_of(entity, member):
                        return provider

        if self._fallback is not None and self._fallback.is_owner_of(entity, member):
            return self._fallback
        return None

    def _cached(self, entity: Any, member: MemberKey) -> MetadataProvider | None:
        with self._lock:
            claims = self._claims.get(entity)
            if claims is None:
                return None
            return claims.get(member)

    def _install(self, entity: Any, member: MemberKey, provider: MetadataProvider) -> MetadataProvider:
        """Cache ``provider`` for the pair unless another answer got there first."""
        with self._lock:
            claims = self._claims.get(entity)
            if claims is None:
                self._claims.set(entity, {member: provider})
                return provider
            return claims.setdefault(member, provider)

    def get_provider(self, entity: Any, member: MemberKey) -> MetadataProvider | None:
        """Provider owning the pair, or None while the pair is unresolved."""
        provider = self._cached(entity, member)
        if provider is not None:
            return provider

        provider = self._resolve(entity, member)
        if provider is None:
            return None
        return self._install(entity, member, provider)

    def set_provider(self, entity: Any, member: MemberKey, provider: MetadataProvider) -> bool:
        """Claim the pair for ``provider``.

        Returns:
            True if the pair now belongs to ``provider`` (newly or already),
            False if it already belongs to a different provider

        Raises:
            ProviderNotRegisteredError: If ``provider`` was never registered
        """
        if not self.has_provider(provider):
            raise ProviderNotRegisteredError("Metadata provider not registered").with_context(
                provider=describe(provider)
            )

        existing = self.get_provider(entity, member)
        claimed = existing is None
        if claimed:
            existing = self._install(entity, member, provider)

        if existing is not provider:
            logger.warning(
                "provider_claim_conflict",
                entity=describe(entity),
                member=member,
                owner=describe(existing),
                claimant=describe(provider),
            )
            return False

        if claimed:
            logger.debug("provider_claimed", entity=describe(entity), member=member, provider=describe(provider))
        return True

    def __repr__(self) -> str:
        return f"ProviderRegistry(providers={len(self.providers())}, fallback={self._fallback is not None})"


def get_or_create_registry(
    host: Any = None,
    *,
    settings: ReflectorSettings | None = None,
) -> ProviderRegistry:
    """Return the process-wide registry, creating and publishing it if needed.

    ``host`` is the namespace shared by every copy of this library in the
    process (the ``sys`` module unless given). A registry already published
    there is reused as is, whichever copy created it. A registry-unaware
    facility found under ``legacy_slot`` becomes the new registry's fallback.
    """
    host = sys if host is None else host
    settings = settings or get_settings()

    existing = getattr(host, settings.registry_slot, None)
    if existing is not None:
        logger.debug("registry_discovered", slot=settings.registry_slot, registry=describe(existing))
        return existing

    fallback = None
    legacy = getattr(host, settings.legacy_slot, None)
    if legacy is not None and is_legacy_facility(legacy):
        fallback = FallbackAdapter(legacy)
        logger.info("legacy_facility_wrapped", slot=settings.legacy_slot)

    registry = ProviderRegistry(fallback=fallback)
    if settings.publish_registry:
        try:
            setattr(host, settings.registry_slot, registry)
        except (AttributeError, TypeError) as exc:
            logger.warning("registry_publish_refused", slot=settings.registry_slot, error=str(exc))
        else:
            logger.debug("registry_published", slot=settings.registry_slot)
    return registry


__all__ = ["ProviderRegistry", "get_or_create_registry"]
