"""Metadata providers and the default in-process metadata store.

Manifesto:
    A provider owns the metadata of a subset of (entity, member) pairs.
    The registry decides which provider owns a pair; the provider only
    answers for data it holds itself. Inheritance is not a provider
    concern: the own-data operations here are composed into inherited
    lookups by :class:`reflector.core.reflector.Reflector`.

Architecture:
    ::

        MetadataStore
        ├── _metadata: IdentityTable
        │     entity -> {member -> {(type(key), key) -> value}}
        │     (dicts at every level, so insertion order is kept)
        └── _claims: IdentityTable
              entity -> {member, ...}   pairs this store has ever claimed

        define() on a new pair:
            1. create the group with the value in place
            2. registry.set_provider(entity, member, self)
            3. refused or raised -> drop the group (and the entity entry if
               it was created by this call); refused raises
               OwnershipConflictError, an exception propagates as is

Tags:
    metadata, provider, store, reflector-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from reflector.core.errors import OwnershipConflictError, describe
from reflector.core.identity import IdentityTable
from reflector.core.logging import get_logger

if TYPE_CHECKING:
    from reflector.core.registry import ProviderRegistry

logger = get_logger(__name__)

MemberKey = str | None


def strict_key(key: Hashable) -> tuple[type, Hashable]:
    """Dictionary key under which a metadata key is stored.

    ``1``, ``1.0`` and ``True`` are equal in Python; metadata keys of
    different types stay distinct.
    """
    return (type(key), key)


@runtime_checkable
class MetadataProvider(Protocol):
    """Contract every metadata backend fulfils.

    All data operations act on the provider's own data for the exact
    (entity, member) pair; none of them walk ancestors.
    """

    def is_owner_of(self, entity: Any, member: MemberKey) -> bool:
        """Whether this provider holds the metadata for the pair."""
        ...

    def define(self, key: Hashable, value: Any, entity: Any, member: MemberKey) -> None:
        ...

    def has(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        ...

    def get(self, key: Hashable, entity: Any, member: MemberKey) -> Any:
        ...

    def keys(self, entity: Any, member: MemberKey) -> list[Any]:
        ...

    def delete(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        ...


class MetadataStore:
    """Default metadata provider backed by identity tables.

    The store registers itself with ``registry`` on construction. Data
    operations are serialized by a per-store lock; ``is_owner_of`` takes no
    lock because the registry calls it while other stores are mid-write.

    Usage:
        registry = ProviderRegistry()
        store = MetadataStore(registry)
        store.define("role", "admin", User, None)
        store.get("role", User, None)      # "admin"
        store.keys(User, None)             # ["role"]
    """

    def __init__(self, registry: ProviderRegistry, *, name: str | None = None):
        self._registry = registry
        self.name = name or f"store-{id(self):x}"
        self._metadata = IdentityTable()
        self._claims = IdentityTable()
        self._lock = threading.RLock()
        registry.register_provider(self)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def is_owner_of(self, entity: Any, member: MemberKey) -> bool:
        claims = self._claims.get(entity)
        return claims is not None and member in claims

    def _group(self, entity: Any, member: MemberKey) -> dict[Any, Any] | None:
        targets = self._metadata.get(entity)
        if targets is None:
            return None
        return targets.get(member)

    def _rollback(self, entity: Any, member: MemberKey, targets: dict, created_targets: bool) -> None:
        del targets[member]
        if created_targets:
            self._metadata.delete(entity)

    def define(self, key: Hashable, value: Any, entity: Any, member: MemberKey) -> None:
        with self._lock:
            targets = self._metadata.get(entity)
            created_targets = targets is None
            if created_targets:
                targets = {}
                self._metadata.set(entity, targets)

            group = targets.get(member)
            if group is not None:
                group[strict_key(key)] = value
                return

            targets[member] = {strict_key(key): value}
            try:
                claimed = self._registry.set_provider(entity, member, self)
            except BaseException:
                self._rollback(entity, member, targets, created_targets)
                raise
            if not claimed:
                self._rollback(entity, member, targets, created_targets)
                logger.warning(
                    "provider_claim_rejected",
                    store=self.name,
                    entity=describe(entity),
                    member=member,
                )
                raise OwnershipConflictError("Wrong provider for target").with_context(
                    entity=describe(entity),
                    member=member,
                    metadata_key=repr(key),
                    provider=self.name,
                )

            claims = self._claims.get(entity)
            if claims is None:
                self._claims.set(entity, {member})
            else:
                claims.add(member)
        logger.debug("metadata_group_created", store=self.name, entity=describe(entity), member=member)

    def has(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        with self._lock:
            group = self._group(entity, member)
            return group is not None and strict_key(key) in group

    def get(self, key: Hashable, entity: Any, member: MemberKey) -> Any:
        with self._lock:
            group = self._group(entity, member)
            if group is None:
                return None
            return group.get(strict_key(key))

    def keys(self, entity: Any, member: MemberKey) -> list[Any]:
        with self._lock:
            group = self._group(entity, member)
            if group is None:
                return []
            return [key for _, key in group]

    def delete(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        with self._lock:
            targets = self._metadata.get(entity)
            if targets is None:
                return False
            group = targets.get(member)
            entry = strict_key(key)
            if group is None or entry not in group:
                return False

            del group[entry]
            if not group:
                del targets[member]
                if not targets:
                    self._metadata.delete(entity)
            return True

    def __repr__(self) -> str:
        return f"MetadataStore(name={self.name!r})"


__all__ = ["MemberKey", "MetadataProvider", "MetadataStore", "strict_key"]
