"""
Structured error types for the reflector metadata core.

Every fatal condition in the core is a ReflectorError subclass carrying a
category and structured context (entity, member, metadata key, provider) so
that a conflict can be logged and reported without re-deriving what was
being touched.

Manifesto:
    - **Typed Error Hierarchy:** One type per failure kind, never a bare Exception
    - **Fatal means fatal:** Ownership conflicts are raised, never resolved silently
    - **Rich Context:** Errors carry the (entity, member) pair they concern
    - **Error Chaining:** Preserve original exceptions as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      ReflectorError                              │
        │              (category, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  InvalidArgumentError        OwnershipConflictError              │
        │  (VALIDATION, TypeError)     (OWNERSHIP)                         │
        │       │                                                          │
        │  InvalidEntityError          ProviderNotRegisteredError          │
        │  AncestryError               RegistryFrozenError                 │
        │                              (REGISTRY)                          │
        └─────────────────────────────────────────────────────────────────┘

        RandomnessUnavailableWarning (RuntimeWarning) - degraded, not fatal

Guardrails:
    ❌ DON'T: Catch OwnershipConflictError and retry the write elsewhere
    ✅ DO: Treat it as two metadata systems disagreeing about state

    ❌ DON'T: Raise from lookups on missing data
    ✅ DO: Return None / False / [] for has, get and keys

Tags:
    error-handling, exception-hierarchy, error-context, reflector-core

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification.

    Attributes:
        VALIDATION: Wrong shape for entity, member key or metadata key
        OWNERSHIP: Two providers disagree about who owns a pair
        REGISTRY: Provider registration misuse (frozen, unknown provider)
        INTERNAL: Bugs, unexpected state
    """

    VALIDATION = "VALIDATION"
    OWNERSHIP = "OWNERSHIP"
    REGISTRY = "REGISTRY"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Entity and provider are stored as short descriptions rather than the
    objects themselves so an error never keeps an entity alive.

    Attributes:
        entity: Description of the entity involved
        member: Member key involved (None for the entity itself)
        metadata_key: Metadata key involved
        provider: Description of the provider involved
        metadata: Additional key-value pairs
    """

    entity: str | None = None
    member: str | None = None
    metadata_key: str | None = None
    provider: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity", "member", "metadata_key", "provider"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


def describe(value: Any) -> str:
    """Short, non-retaining description of an entity or provider for context."""
    if isinstance(value, type):
        return f"<class {value.__module__}.{value.__qualname__}>"
    return f"<{type(value).__name__} at {id(value):#x}>"


class ReflectorError(Exception):
    """
    Base exception for all reflector errors.

    Subclasses set ``default_category``. All instances carry:
    - **category:** ErrorCategory for classification
    - **context:** ErrorContext with the pair being touched
    - **cause:** Optional underlying exception for chaining

    Examples:
        >>> error = OwnershipConflictError("Wrong provider for target")
        >>> error.category
        <ErrorCategory.OWNERSHIP: 'OWNERSHIP'>
        >>> error.with_context(member="name").context.member
        'name'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ReflectorError:
        """
        Add context to this error (fluent API).

        Usage:
            raise OwnershipConflictError("Wrong provider").with_context(
                entity=describe(target), member=member
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class InvalidArgumentError(ReflectorError, TypeError):
    """Wrong shape for a member key or metadata key."""

    default_category = ErrorCategory.VALIDATION


class InvalidEntityError(InvalidArgumentError):
    """The target cannot carry metadata (None, booleans, numbers, strings, bytes)."""


class AncestryError(InvalidArgumentError):
    """The ancestor chain is longer than ``max_ancestor_depth``, usually a cycle."""


# =============================================================================
# OWNERSHIP / REGISTRY ERRORS
# =============================================================================


class OwnershipConflictError(ReflectorError):
    """
    A claim on an (entity, member) pair was refused.

    Raised when a store tries to take a pair that the registry has already
    resolved to a different store. The store that raised it has rolled back
    anything it created for the call.
    """

    default_category = ErrorCategory.OWNERSHIP


class ProviderNotRegisteredError(ReflectorError):
    """A claim was attempted on behalf of a provider the registry does not know."""

    default_category = ErrorCategory.REGISTRY


class RegistryFrozenError(ReflectorError):
    """A provider was registered after the registry was frozen."""

    default_category = ErrorCategory.REGISTRY


# =============================================================================
# WARNINGS
# =============================================================================


class RandomnessUnavailableWarning(RuntimeWarning):
    """
    No secure random source; identity-table labels use ``random`` instead.

    Labels stay unique within the process (collisions are retried), they are
    only easier to predict.
    """


def is_fatal(error: Exception) -> bool:
    """Ownership and registry errors indicate inconsistent state."""
    if isinstance(error, ReflectorError):
        return error.category in (ErrorCategory.OWNERSHIP, ErrorCategory.REGISTRY)
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ReflectorError",
    "InvalidArgumentError",
    "InvalidEntityError",
    "AncestryError",
    "OwnershipConflictError",
    "ProviderNotRegisteredError",
    "RegistryFrozenError",
    "RandomnessUnavailableWarning",
    "describe",
    "is_fatal",
]
