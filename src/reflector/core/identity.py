"""Identity-keyed ephemeral tables.

An :class:`IdentityTable` maps an object's *identity* to a value. It never
consults ``__eq__``/``__hash__`` of the key and never keeps the key alive
through its own bookkeeping.

Manifesto:
    ``weakref.WeakKeyDictionary`` compares keys with ``==``, so two distinct
    entities that compare equal would share metadata, and objects that are
    unhashable or lack ``__weakref__`` cannot be used at all. Metadata must
    follow identity, and it must work for every annotatable object.

Architecture:
    ::

        class entity ── __reflector_identity__ (in the class's own namespace)
                              │
                              └── _Slot
        other entity ── _slots: dict[id(entity) -> _Slot]   (process-wide)
                              │
                              └── _Slot
                                    ├── values: dict[label -> value]
                                    │     one entry per IdentityTable that
                                    │     stored something for this entity
                                    └── weakref (+ finalizer evicting the
                                        side-table entry on collection), or
                                        a strong reference when the entity is
                                        not weak-referenceable

        IdentityTable ── label (random 128-bit, UUID layout, unique per process)

Lifetime:
    A class carries its slot in its own ``__dict__``, so a value that refers
    back to the class (``define("design:type", Node, Node)``) only forms a
    reference cycle and the class is collected normally. The slot is read
    from the class's own namespace, never through attribute lookup, so
    subclasses do not see it.

    Every other entity has its slot in the process-wide side table. Values
    there are held strongly, so a value that refers back to its own entity
    keeps that entity alive until :func:`release` is called for it. Entities
    without weak-reference support are pinned the same way until
    :func:`release` or until every table deletes its value. Instances are not
    given an attribute because it would show up in their ``__dict__``
    (equality, ``copy``, ``pickle``).

Clearing:
    ``IdentityTable.clear()`` rotates the table's label. Values stored under
    the old label become unreachable through the table in O(1); they are
    physically dropped when their entity is collected or released.

Tags:
    weakref, identity-map, side-table, reflector-core

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import random
import secrets
import threading
import uuid
import warnings
import weakref
from typing import Any

from reflector.core.errors import RandomnessUnavailableWarning
from reflector.core.logging import get_logger

logger = get_logger(__name__)

LABEL_SIZE = 16
CLASS_SLOT = "__reflector_identity__"

_lock = threading.RLock()
_slots: dict[int, _Slot] = {}
_issued_labels: set[str] = set()
_fallback_random: random.Random | None = None


class _Slot:
    """Per-entity storage shared by every table that touches the entity."""

    __slots__ = ("handle", "values", "in_class", "_ref", "_strong", "_finalizer")

    def __init__(self, entity: Any, *, in_class: bool = False):
        self.handle = id(entity)
        self.values: dict[str, Any] = {}
        self.in_class = in_class
        self._strong: Any = None
        self._finalizer: weakref.finalize | None = None
        try:
            self._ref: weakref.ref | None = weakref.ref(entity)
        except TypeError:
            self._ref = None
            self._strong = entity
        else:
            if not in_class:
                self._finalizer = weakref.finalize(entity, _evict, self.handle, self)

    def holds(self, entity: Any) -> bool:
        if self._ref is not None:
            return self._ref() is entity
        return self._strong is entity

    def detach(self) -> None:
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        self._strong = None


def _evict(handle: int, slot: _Slot) -> None:
    with _lock:
        if _slots.get(handle) is slot:
            del _slots[handle]


def _class_slot(entity: Any) -> _Slot | None:
    if not isinstance(entity, type):
        return None
    slot = entity.__dict__.get(CLASS_SLOT)
    if isinstance(slot, _Slot) and slot.holds(entity):
        return slot
    return None


def _attach_to_class(entity: Any) -> _Slot | None:
    slot = _Slot(entity, in_class=True)
    try:
        type.__setattr__(entity, CLASS_SLOT, slot)
    except (AttributeError, TypeError):
        # built-in and extension types are immutable
        return None
    return slot


def _get_slot(entity: Any, create: bool) -> _Slot | None:
    slot = _class_slot(entity)
    if slot is not None:
        return slot
    slot = _slots.get(id(entity))
    if slot is not None and slot.holds(entity):
        return slot
    if not create:
        return None

    if isinstance(entity, type):
        slot = _attach_to_class(entity)
        if slot is not None:
            return slot
    slot = _Slot(entity)
    _slots[slot.handle] = slot
    return slot


def _drop_slot(entity: Any, slot: _Slot) -> None:
    if slot.in_class:
        type.__delattr__(entity, CLASS_SLOT)
    else:
        del _slots[slot.handle]
    slot.detach()


def release(entity: Any) -> bool:
    """Drop every table's value for ``entity``.

    Required at teardown for entities that cannot be weakly referenced, and
    for non-class entities holding a value that refers back to the entity
    itself; either kind stays alive until released. Optional otherwise.

    Returns:
        True if the entity had a slot
    """
    with _lock:
        slot = _get_slot(entity, create=False)
        if slot is None:
            return False
        _drop_slot(entity, slot)
    logger.debug("identity_slot_released", handle=slot.handle)
    return True


def tracked_count() -> int:
    """Number of entities whose slot lives in the process-wide side table."""
    with _lock:
        return len(_slots)


def _random_bytes(size: int) -> bytes:
    global _fallback_random
    if _fallback_random is None:
        try:
            return secrets.token_bytes(size)
        except NotImplementedError:
            _fallback_random = random.Random()
            logger.warning("randomness_unavailable", fallback="random.Random")
            warnings.warn(
                "No secure random source; identity labels fall back to random.Random",
                RandomnessUnavailableWarning,
                stacklevel=3,
            )
    return bytes(_fallback_random.getrandbits(8) for _ in range(size))


def create_label() -> str:
    """Create a process-unique, UUID-formatted table label.

    Version and variant bits are forced (RFC 4122 §4.4); a label already
    issued in this process is never returned again.
    """
    with _lock:
        while True:
            label = str(uuid.UUID(bytes=_random_bytes(LABEL_SIZE), version=4))
            if label not in _issued_labels:
                _issued_labels.add(label)
                return label


class IdentityTable:
    """Mapping from object identity to a value.

    Usage:
        table = IdentityTable()
        table.set(entity, {"x": 1})
        table.get(entity)          # {"x": 1}
        table.delete(entity)       # True
    """

    def __init__(self) -> None:
        self._label = create_label()

    @property
    def label(self) -> str:
        return self._label

    def has(self, entity: Any) -> bool:
        with _lock:
            slot = _get_slot(entity, create=False)
            return slot is not None and self._label in slot.values

    def get(self, entity: Any, default: Any = None) -> Any:
        with _lock:
            slot = _get_slot(entity, create=False)
            if slot is None:
                return default
            return slot.values.get(self._label, default)

    def set(self, entity: Any, value: Any) -> IdentityTable:
        with _lock:
            slot = _get_slot(entity, create=True)
            slot.values[self._label] = value
        return self

    def delete(self, entity: Any) -> bool:
        with _lock:
            slot = _get_slot(entity, create=False)
            if slot is None or self._label not in slot.values:
                return False
            del slot.values[self._label]
            if not slot.values:
                _drop_slot(entity, slot)
            return True

    def clear(self) -> None:
        """Make every stored value unreachable through this table.

        The label is rotated rather than the slots scrubbed; see the module
        docstring.
        """
        previous = self._label
        self._label = create_label()
        logger.debug("identity_label_rotated", previous=previous, label=self._label)

    def __contains__(self, entity: Any) -> bool:
        return self.has(entity)

    def __repr__(self) -> str:
        return f"IdentityTable(label={self._label!r})"


__all__ = [
    "IdentityTable",
    "create_label",
    "release",
    "tracked_count",
]
