"""Module-level metadata functions bound to a default :class:`Reflector`.

The default Reflector is created on first use against the process-wide
registry (see :func:`reflector.core.registry.get_or_create_registry`), so
two copies of this library loaded into one process share ownership
decisions and see each other's metadata.

Usage:
    from reflector import define_metadata, get_metadata

    class Base: ...
    class Derived(Base): ...

    define_metadata("x", 1, Base)
    get_metadata("x", Derived)   # 1
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from typing import Any

from reflector.core.identity import release as _release
from reflector.core.reflector import Reflector
from reflector.core.store import MemberKey

_default: Reflector | None = None
_default_lock = threading.Lock()


def get_reflector() -> Reflector:
    """Return the default Reflector, creating it on first call."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Reflector()
    return _default


def reset_reflector() -> None:
    """Forget the default Reflector (for testing)."""
    global _default
    with _default_lock:
        _default = None


def define_metadata(key: Hashable, value: Any, entity: Any, member: MemberKey = None) -> None:
    get_reflector().define_metadata(key, value, entity, member)


def has_metadata(key: Hashable, entity: Any, member: MemberKey = None) -> bool:
    return get_reflector().has_metadata(key, entity, member)


def has_own_metadata(key: Hashable, entity: Any, member: MemberKey = None) -> bool:
    return get_reflector().has_own_metadata(key, entity, member)


def get_metadata(key: Hashable, entity: Any, member: MemberKey = None) -> Any:
    return get_reflector().get_metadata(key, entity, member)


def get_own_metadata(key: Hashable, entity: Any, member: MemberKey = None) -> Any:
    return get_reflector().get_own_metadata(key, entity, member)


def get_metadata_keys(entity: Any, member: MemberKey = None) -> list[Any]:
    return get_reflector().get_metadata_keys(entity, member)


def get_own_metadata_keys(entity: Any, member: MemberKey = None) -> list[Any]:
    return get_reflector().get_own_metadata_keys(entity, member)


def delete_metadata(key: Hashable, entity: Any, member: MemberKey = None) -> bool:
    return get_reflector().delete_metadata(key, entity, member)


def release(entity: Any) -> bool:
    """Drop all metadata and claims held for ``entity`` in this process."""
    return _release(entity)


__all__ = [
    "get_reflector",
    "reset_reflector",
    "define_metadata",
    "has_metadata",
    "has_own_metadata",
    "get_metadata",
    "get_own_metadata",
    "get_metadata_keys",
    "get_own_metadata_keys",
    "delete_metadata",
    "release",
]
