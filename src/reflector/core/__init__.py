"""Reflector Core -- identity tables, metadata providers and their registry.

Architecture::

    Layer 1 -- Ambient
        errors.py          Structured error hierarchy (ReflectorError, ...)
        logging.py         structlog configuration
        settings.py        pydantic-settings (REFLECTOR_* env vars)

    Layer 2 -- Storage primitive
        identity.py        IdentityTable: identity-keyed ephemeral mapping

    Layer 3 -- Providers
        store.py           MetadataProvider protocol + MetadataStore
        fallback.py        FallbackAdapter over a registry-unaware facility
        registry.py        ProviderRegistry + process-wide discovery

    Layer 4 -- Operations
        ancestry.py        parent_of + bounded ancestor walk
        reflector.py       Reflector: define/has/get/keys/delete
"""

from reflector.core.errors import (
    AncestryError,
    ErrorCategory,
    ErrorContext,
    InvalidArgumentError,
    InvalidEntityError,
    OwnershipConflictError,
    ProviderNotRegisteredError,
    RandomnessUnavailableWarning,
    ReflectorError,
    RegistryFrozenError,
)
from reflector.core.fallback import FallbackAdapter, LegacyMetadataFacility
from reflector.core.identity import IdentityTable, release
from reflector.core.reflector import Reflector, is_annotatable
from reflector.core.registry import ProviderRegistry, get_or_create_registry
from reflector.core.store import MetadataProvider, MetadataStore

__all__ = [
    "AncestryError",
    "ErrorCategory",
    "ErrorContext",
    "FallbackAdapter",
    "IdentityTable",
    "InvalidArgumentError",
    "InvalidEntityError",
    "LegacyMetadataFacility",
    "MetadataProvider",
    "MetadataStore",
    "OwnershipConflictError",
    "ProviderNotRegisteredError",
    "ProviderRegistry",
    "RandomnessUnavailableWarning",
    "Reflector",
    "ReflectorError",
    "RegistryFrozenError",
    "get_or_create_registry",
    "is_annotatable",
    "release",
]
