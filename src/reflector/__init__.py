"""reflector -- out-of-band metadata for classes, members and objects.

Attach key/value annotations to any object with stable identity, query them
through the object's ancestor chain, and share them with every other copy of
this library loaded into the same process.
"""

from reflector.core import (
    OwnershipConflictError,
    ProviderRegistry,
    Reflector,
    ReflectorError,
)
from reflector.metadata import (
    define_metadata,
    delete_metadata,
    get_metadata,
    get_metadata_keys,
    get_own_metadata,
    get_own_metadata_keys,
    get_reflector,
    has_metadata,
    has_own_metadata,
    release,
)

__version__ = "0.1.0"

__all__ = [
    "OwnershipConflictError",
    "ProviderRegistry",
    "Reflector",
    "ReflectorError",
    "define_metadata",
    "delete_metadata",
    "get_metadata",
    "get_metadata_keys",
    "get_own_metadata",
    "get_own_metadata_keys",
    "get_reflector",
    "has_metadata",
    "has_own_metadata",
    "release",
]
