"""Ancestor chains for inherited metadata lookups.

Inherited lookups walk an explicit parent-pointer chain supplied by a
``parent_of`` callable rather than relying on attribute inheritance. The
chain ends when ``parent_of`` returns None.

Default chain:
    - a class resolves to its first base; ``object`` is the root
    - any other object resolves to its type, so instances see the metadata
      of their class and its bases

    ::

        instance ──► Derived ──► Base ──► object ──► None
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from reflector.core.errors import AncestryError, describe

ParentOf = Callable[[Any], Any]


def default_parent_of(entity: Any) -> Any:
    if isinstance(entity, type):
        bases = entity.__bases__
        return bases[0] if bases else None
    return type(entity)


def iter_ancestry(entity: Any, parent_of: ParentOf, max_depth: int) -> Iterator[Any]:
    """Yield ``entity`` and then each ancestor up to the root.

    Raises:
        AncestryError: If more than ``max_depth`` ancestors follow ``entity``
    """
    current = entity
    depth = 0
    while current is not None:
        yield current
        current = parent_of(current)
        depth += 1
        if current is not None and depth > max_depth:
            raise AncestryError("Ancestor chain exceeds the configured depth").with_context(
                entity=describe(entity), max_depth=max_depth
            )


__all__ = ["ParentOf", "default_parent_of", "iter_ancestry"]
