"""
Shared pytest fixtures and configuration for reflector tests.

This module provides:
- Registry cleanup fixtures for test isolation
- A registry-unaware legacy facility for fallback tests
- Small entity hierarchies

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.
"""

import sys
from pathlib import Path
from typing import Any, Generator

import pytest

# Ensure reflector package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reflector.core.registry import ProviderRegistry
from reflector.core.settings import clear_settings_cache, get_settings
from reflector.metadata import reset_reflector


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_shared_registry_fixture() -> Generator[None, None, None]:
    """
    Forget the default Reflector and the registry published on ``sys``.

    This ensures test isolation - no test can see providers or claims
    left behind by another.
    """
    clear_settings_cache()
    slot = get_settings().registry_slot
    reset_reflector()
    if hasattr(sys, slot):
        delattr(sys, slot)
    yield
    reset_reflector()
    if hasattr(sys, slot):
        delattr(sys, slot)
    clear_settings_cache()


@pytest.fixture
def registry() -> ProviderRegistry:
    """A private registry, not published anywhere."""
    return ProviderRegistry()


# =============================================================================
# Legacy Facility
# =============================================================================


class LegacyFacility:
    """Registry-unaware metadata helper, keyed by identity.

    Holds strong references to its entities; good enough for tests.
    """

    def __init__(self) -> None:
        self._data: dict[tuple[int, Any], dict[Any, Any]] = {}
        self._entities: list[Any] = []
        self.calls: list[str] = []

    def _group(self, entity: Any, member: Any, create: bool = False) -> dict[Any, Any] | None:
        key = (id(entity), member)
        if key not in self._data and create:
            self._data[key] = {}
            self._entities.append(entity)
        return self._data.get(key)

    def define_metadata(self, key: Any, value: Any, entity: Any, member: Any = None) -> None:
        self.calls.append("define_metadata")
        self._group(entity, member, create=True)[key] = value

    def has_own_metadata(self, key: Any, entity: Any, member: Any = None) -> bool:
        self.calls.append("has_own_metadata")
        group = self._group(entity, member)
        return group is not None and key in group

    def get_own_metadata(self, key: Any, entity: Any, member: Any = None) -> Any:
        self.calls.append("get_own_metadata")
        group = self._group(entity, member)
        return None if group is None else group.get(key)

    def get_own_metadata_keys(self, entity: Any, member: Any = None) -> list[Any]:
        self.calls.append("get_own_metadata_keys")
        group = self._group(entity, member)
        return [] if group is None else list(group)

    def delete_metadata(self, key: Any, entity: Any, member: Any = None) -> bool:
        self.calls.append("delete_metadata")
        group = self._group(entity, member)
        if group is None or key not in group:
            return False
        del group[key]
        return True


@pytest.fixture
def legacy_facility() -> LegacyFacility:
    return LegacyFacility()


# =============================================================================
# Entity Fixtures
# =============================================================================


@pytest.fixture
def hierarchy() -> tuple[type, type, type]:
    """Fresh ``Base <- Derived <- Leaf`` classes per test."""

    class Base:
        pass

    class Derived(Base):
        pass

    class Leaf(Derived):
        pass

    return Base, Derived, Leaf
