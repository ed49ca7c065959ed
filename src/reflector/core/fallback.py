"""Adapter that lets a registry-unaware metadata facility act as a provider.

A facility installed before any registry existed (an older copy of this
library, or a hand-written annotation helper) keeps its own storage and
knows nothing about claims. :class:`FallbackAdapter` wraps it so the
registry can route reads and deletes for pairs the facility already holds,
without the facility being rewritten.

Ownership:
    A pair belongs to the facility once the facility reports at least one
    own key for it. That answer is memoized per entity, so deleting the
    facility's last key later does not hand the pair to another provider.

Tags:
    metadata, provider, adapter, interoperability, reflector-core
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any, Protocol, runtime_checkable

from reflector.core.errors import describe
from reflector.core.identity import IdentityTable
from reflector.core.logging import get_logger
from reflector.core.store import MemberKey

logger = get_logger(__name__)


@runtime_checkable
class LegacyMetadataFacility(Protocol):
    """The own-data entry points a wrapped facility must expose."""

    def define_metadata(self, key: Hashable, value: Any, entity: Any, member: MemberKey = None) -> None:
        ...

    def has_own_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> bool:
        ...

    def get_own_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> Any:
        ...

    def get_own_metadata_keys(self, entity: Any, member: MemberKey = None) -> list[Any]:
        ...

    def delete_metadata(self, key: Hashable, entity: Any, member: MemberKey = None) -> bool:
        ...


def is_legacy_facility(candidate: Any) -> bool:
    """Whether ``candidate`` exposes every entry point the adapter forwards to."""
    return all(
        callable(getattr(candidate, name, None))
        for name in (
            "define_metadata",
            "has_own_metadata",
            "get_own_metadata",
            "get_own_metadata_keys",
            "delete_metadata",
        )
    )


class FallbackAdapter:
    """Provider view over a :class:`LegacyMetadataFacility`."""

    def __init__(self, facility: LegacyMetadataFacility):
        self._facility = facility
        self._owned = IdentityTable()

    @property
    def facility(self) -> LegacyMetadataFacility:
        return self._facility

    def is_owner_of(self, entity: Any, member: MemberKey) -> bool:
        members = self._owned.get(entity)
        if members is not None and member in members:
            return True
        if not self._facility.get_own_metadata_keys(entity, member):
            return False

        if members is None:
            self._owned.set(entity, {member})
        else:
            members.add(member)
        logger.debug("fallback_pair_claimed", entity=describe(entity), member=member)
        return True

    def define(self, key: Hashable, value: Any, entity: Any, member: MemberKey) -> None:
        self._facility.define_metadata(key, value, entity, member)

    def has(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        return bool(self._facility.has_own_metadata(key, entity, member))

    def get(self, key: Hashable, entity: Any, member: MemberKey) -> Any:
        return self._facility.get_own_metadata(key, entity, member)

    def keys(self, entity: Any, member: MemberKey) -> list[Any]:
        return list(self._facility.get_own_metadata_keys(entity, member))

    def delete(self, key: Hashable, entity: Any, member: MemberKey) -> bool:
        return bool(self._facility.delete_metadata(key, entity, member))

    def __repr__(self) -> str:
        return f"FallbackAdapter({self._facility!r})"


__all__ = ["FallbackAdapter", "LegacyMetadataFacility", "is_legacy_facility"]
