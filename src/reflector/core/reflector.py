"""Collaborator-facing metadata operations.

:class:`Reflector` binds one :class:`MetadataStore` to a
:class:`ProviderRegistry` and exposes define / has / get / keys / delete,
each in an own-only and an inherited form. Every read resolves the owning
provider through the registry, so metadata written by another copy of this
library (another store on the same registry, or a wrapped legacy facility)
is visible here and is never duplicated.

Metadata keys are matched by type and value: ``1``, ``1.0`` and ``True``
are three different keys even though Python considers them equal.

Manifesto:
    - **Lookups are total:** missing data is None / False / [], never an error
    - **Writes are all-or-nothing:** a refused or failed claim leaves every store as it was
    - **Explicit inheritance:** the ancestor chain comes from ``parent_of``

Examples:
    >>> reflector = Reflector(ProviderRegistry())
    >>> class Base: ...
    >>> class Derived(Base): ...
    >>> reflector.define_metadata("x", 1, Base)
    >>> reflector.get_metadata("x", Derived)
    1
    >>> reflector.has_own_metadata("x", Derived)
    False

Tags:
    metadata, reflection, annotations, inheritance, reflector-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any

from reflector.core.ancestry import ParentOf, default_parent_of, iter_ancestry
from reflector.core.errors import (
    InvalidArgumentError,
    InvalidEntityError,
    OwnershipConflictError,
    describe,
)
from reflector.core.identity import release
from reflector.core.logging import get_logger
from reflector.core.registry import ProviderRegistry, get_or_create_registry
from reflector.core.settings import ReflectorSettings, get_settings
from reflector.core.store import MemberKey, MetadataProvider, MetadataStore, strict_key

logger = get_logger(__name__)

_PRIMITIVES = (bool, int, float, complex, str, bytes)


def is_annotatable(entity: Any) -> bool:
    """Objects with stable identity can carry metadata; None and primitives cannot."""
    return entity is not None and not isinstance(entity, _PRIMITIVES)


def _check_entity(entity: Any) -> None:
    if not is_annotatable(entity):
        raise InvalidEntityError(f"Cannot attach metadata to {type(entity).__name__}")


def _check_member(member: Any) -> None:
    if member is not None and not isinstance(member, str):
        raise InvalidArgumentError(f"Member key must be a str or None, not {type(member).__name__}")


def _check_key(key: Any) -> None:
    try:
        hash(key)
    except TypeError as exc:
        raise InvalidArgumentError(
            f"Metadata key must be hashable, not {type(key).__name__}", cause=exc
        ) from exc


class Reflector:
    """Metadata operations over a registry and this instance's own store.

    Args:
        registry: Registry to resolve owners through; the process-wide
            registry when omitted
        parent_of: Ancestor function for inherited lookups
        settings: Settings (``max_ancestor_depth``); cached settings when omitted
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        *,
        parent_of: ParentOf | None = None,
        settings: ReflectorSettings | None = None,
    ):
        settings = settings or get_settings()
        self.registry = registry if registry is not None else get_or_create_registry(settings=settings)
        self.store = MetadataStore(self.registry)
        self._parent_of = parent_of or default_parent_of
        self._max_depth = settings.max_ancestor_depth

    def _provider(self, entity: Any, member: MemberKey, create: bool) -> MetadataProvider | None:
        provider = self.registry.get_provider(entity, member)
        if provider is not None or not create:
            return provider
        if self.registry.set_provider(entity, member, self.store):
            return self.store
        raise OwnershipConflictError("Illegal state: pair claimed during resolution").with_context(
            entity=describe(entity), member=member, provider=self.store.name
        )

    def _ancestry(self, entity: Any):
        return iter_ancestry(entity, self._parent_of, self._max_depth)

    # ── Writes ───────────────────────────────────────────────────

    def define_metadata(self, key: Hashable, value: Any, entity: Any, member: MemberKey = None) -> None:
        """Attach ``key -> value`` to the entity (or one of its members).

        Raises:
            InvalidEntityError: If the entity cannot carry metadata
            OwnershipConflictError: If the owning provider cannot be settled
        """
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        self._provider(entity, member, create=True).define(key, value, entity, member)

    def delete_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> bool:
        """Remove an own annotation; False if no provider owns the pair or the key is unset."""
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        provider = self._provider(entity, member, create=False)
        if provider is None:
            return False
        return provider.delete(key, entity, member)

    # ── Own-only reads ───────────────────────────────────────────

    def has_own_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> bool:
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        return self._has_own(key, entity, member)

    def get_own_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> Any:
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        provider = self._provider(entity, member, create=False)
        if provider is None:
            return None
        return provider.get(key, entity, member)

    def get_own_metadata_keys(self, entity: Any, member: MemberKey = None) -> list[Any]:
        _check_entity(entity)
        _check_member(member)
        return self._own_keys(entity, member)

    def _has_own(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        provider = self._provider(entity, member, create=False)
        return provider is not None and bool(provider.has(key, entity, member))

    def _own_keys(self, entity: Any, member: MemberKey) -> list[Any]:
        provider = self._provider(entity, member, create=False)
        if provider is None:
            return []
        return list(provider.keys(entity, member))

    # ── Inherited reads ──────────────────────────────────────────

    def has_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> bool:
        """Whether the entity or any ancestor has ``key`` for ``member``."""
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        return any(self._has_own(key, target, member) for target in self._ancestry(entity))

    def get_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> Any:
        """Value from the nearest entity in the chain that has ``key``, else None."""
        _check_entity(entity)
        _check_member(member)
        _check_key(key)
        for target in self._ancestry(entity):
            provider = self._provider(target, member, create=False)
            if provider is not None and provider.has(key, target, member):
                return provider.get(key, target, member)
        return None

    def get_metadata_keys(self, entity: Any, member: MemberKey = None) -> list[Any]:
        """Own keys in insertion order, then each ancestor's unseen keys."""
        _check_entity(entity)
        _check_member(member)
        seen: set[Any] = set()
        keys: list[Any] = []
        for target in self._ancestry(entity):
            for key in self._own_keys(target, member):
                entry = strict_key(key)
                if entry not in seen:
                    seen.add(entry)
                    keys.append(key)
        return keys

    # ── Lifecycle ────────────────────────────────────────────────

    def release(self, entity: Any) -> bool:
        """Drop everything identity tables hold for ``entity`` (all stores, all claims)."""
        return release(entity)

    def __repr__(self) -> str:
        return f"Reflector(store={self.store.name!r})"


__all__ = ["Reflector", "is_annotatable"]
