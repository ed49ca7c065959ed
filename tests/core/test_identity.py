"""Tests for reflector.core.identity module.

Covers:
- IdentityTable has/get/set/delete/clear
- Isolation between tables sharing an entity
- Identity (not equality) keying, unhashable and slotted entities
- Slot eviction on collection and explicit release
- Self-referencing values on classes and instances
- Label format, uniqueness and the insecure-randomness fallback
"""

import gc
import re
import weakref

import pytest

from reflector.core import identity
from reflector.core.errors import RandomnessUnavailableWarning
from reflector.core.identity import IdentityTable, create_label, release, tracked_count

LABEL_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


class Plain:
    pass


class Slotted:
    __slots__ = ("x",)


class AlwaysEqual:
    def __eq__(self, other):
        return True

    def __hash__(self):
        return 0


class TestIdentityTable:
    """Test the basic mapping contract."""

    def test_set_then_get(self):
        """A stored value is returned and reported present."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, {"a": 1})
        assert table.get(entity) == {"a": 1}
        assert table.has(entity)
        assert entity in table

    def test_set_returns_table(self):
        """set() returns the table for chaining."""
        table = IdentityTable()
        assert table.set(Plain(), 1) is table

    def test_get_missing_returns_default(self):
        """A missing entity yields the default."""
        table = IdentityTable()
        entity = Plain()
        assert table.get(entity) is None
        assert table.get(entity, "missing") == "missing"
        assert not table.has(entity)

    def test_delete_reports_presence(self):
        """delete() is True once, then False."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        assert table.delete(entity) is True
        assert table.delete(entity) is False
        assert not table.has(entity)

    def test_overwrite(self):
        """A second set() replaces the value."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        table.set(entity, 2)
        assert table.get(entity) == 2

    def test_instance_gets_no_attributes(self):
        """Instances are never given attributes."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        assert vars(entity) == {}


class TestIsolation:
    """Separate tables never see each other's values."""

    def test_two_tables_same_entity(self):
        """Each table sees only its own value."""
        first, second = IdentityTable(), IdentityTable()
        entity = Plain()
        first.set(entity, "first")
        second.set(entity, "second")
        assert first.get(entity) == "first"
        assert second.get(entity) == "second"

    def test_delete_in_one_table_keeps_other(self):
        """Deleting from one table leaves the other's value."""
        first, second = IdentityTable(), IdentityTable()
        entity = Plain()
        first.set(entity, "first")
        second.set(entity, "second")
        first.delete(entity)
        assert not first.has(entity)
        assert second.get(entity) == "second"

    def test_keyed_by_identity_not_equality(self):
        """Objects that compare equal are still distinct keys."""
        table = IdentityTable()
        a, b = AlwaysEqual(), AlwaysEqual()
        table.set(a, "a")
        assert table.get(b) is None
        table.set(b, "b")
        assert table.get(a) == "a"


class TestClassEntities:
    """Classes keep their slot in their own namespace."""

    def test_subclass_does_not_inherit_value(self):
        """A value on a base class is not visible on its subclass."""
        table = IdentityTable()

        class Base:
            pass

        class Derived(Base):
            pass

        table.set(Base, "base")
        assert table.get(Derived) is None
        table.set(Derived, "derived")
        assert table.get(Base) == "base"

    def test_copied_namespace_does_not_share_values(self):
        """A class rebuilt from another class's namespace starts empty."""
        table = IdentityTable()

        class Original:
            pass

        table.set(Original, "original")
        namespace = {k: v for k, v in vars(Original).items() if k not in ("__dict__", "__weakref__")}
        Clone = type("Clone", Original.__bases__, namespace)
        assert table.get(Clone) is None
        table.set(Clone, "clone")
        assert table.get(Original) == "original"

    def test_builtin_type(self):
        """Immutable built-in types use the side table."""
        table = IdentityTable()
        table.set(int, "int")
        assert table.get(int) == "int"
        assert table.delete(int) is True

    def test_class_released(self):
        """release() clears a class's values in every table."""
        table = IdentityTable()

        class Temporary:
            pass

        table.set(Temporary, 1)
        assert release(Temporary) is True
        assert table.get(Temporary) is None
        assert release(Temporary) is False


class TestClear:
    """clear() rotates the label."""

    def test_clear_hides_previous_values(self):
        """Values stored before clear() are unreachable afterwards."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        old_label = table.label
        table.clear()
        assert table.label != old_label
        assert not table.has(entity)
        assert table.get(entity) is None
        assert table.delete(entity) is False

    def test_clear_then_reuse(self):
        """A cleared table accepts new values."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        table.clear()
        table.set(entity, 2)
        assert table.get(entity) == 2

    def test_clear_leaves_other_tables(self):
        """clear() does not affect other tables."""
        first, second = IdentityTable(), IdentityTable()
        entity = Plain()
        first.set(entity, 1)
        second.set(entity, 2)
        first.clear()
        assert second.get(entity) == 2


class TestUnusualEntities:
    """Entities without hashing or weak-reference support."""

    def test_unhashable_entity(self):
        """Unhashable objects are keyed by identity."""
        table = IdentityTable()
        entity = [1, 2, 3]
        table.set(entity, "list")
        assert table.get(entity) == "list"
        assert table.get([1, 2, 3]) is None
        release(entity)

    def test_slotted_entity_is_pinned_until_release(self):
        """Non-weakrefable objects hold a slot until release()."""
        table = IdentityTable()
        entity = Slotted()
        before = tracked_count()
        table.set(entity, "slotted")
        assert tracked_count() == before + 1
        assert release(entity) is True
        assert tracked_count() == before
        assert table.get(entity) is None

    def test_delete_last_value_drops_slot(self):
        """Deleting the last value frees the slot."""
        table = IdentityTable()
        entity = Slotted()
        before = tracked_count()
        table.set(entity, 1)
        table.delete(entity)
        assert tracked_count() == before


class TestLifecycle:
    """Slots never keep weak-referenceable entities alive on their own."""

    def test_slot_evicted_when_entity_collected(self):
        """Collecting an instance evicts its side-table slot."""
        table = IdentityTable()
        entity = Plain()
        before = tracked_count()
        table.set(entity, "value")
        assert tracked_count() == before + 1
        del entity
        gc.collect()
        assert tracked_count() == before

    def test_class_entity_collected(self):
        """A class holding a value is collected normally."""
        table = IdentityTable()

        class Temporary:
            pass

        ref = weakref.ref(Temporary)
        table.set(Temporary, "value")
        del Temporary
        gc.collect()
        assert ref() is None

    def test_self_referencing_class_collected(self):
        """A class whose value refers back to the class is still collected."""
        table = IdentityTable()

        class Node:
            pass

        table.set(Node, {None: {"design:type": Node}})
        ref = weakref.ref(Node)
        before = tracked_count()
        del Node
        gc.collect()
        assert ref() is None
        assert tracked_count() == before

    def test_self_referencing_instance_freed_by_release(self):
        """An instance whose value refers back to it is freed by release()."""
        table = IdentityTable()
        entity = Plain()
        table.set(entity, {"self": entity})
        ref = weakref.ref(entity)
        assert release(entity) is True
        del entity
        gc.collect()
        assert ref() is None

    def test_release_unknown_entity(self):
        """release() of an untracked entity is False."""
        assert release(Plain()) is False

    def test_release_clears_every_table(self):
        """release() removes the entity from all tables."""
        first, second = IdentityTable(), IdentityTable()
        entity = Plain()
        first.set(entity, 1)
        second.set(entity, 2)
        assert release(entity) is True
        assert not first.has(entity)
        assert not second.has(entity)


class TestLabels:
    """Label generation."""

    def test_label_layout(self):
        """Labels use the version 4 UUID layout."""
        assert LABEL_PATTERN.match(create_label())

    def test_labels_unique(self):
        """Many labels never repeat."""
        labels = {create_label() for _ in range(200)}
        assert len(labels) == 200

    def test_collision_is_retried(self, monkeypatch):
        """A label already issued is regenerated."""
        fixed = bytes(16)
        other = bytes(range(16))
        supply = iter([fixed, fixed, other])
        monkeypatch.setattr(identity.secrets, "token_bytes", lambda size: next(supply))

        first = create_label()
        second = create_label()
        assert first != second
        assert LABEL_PATTERN.match(second)

    def test_insecure_fallback_warns_and_still_works(self, monkeypatch):
        """Without a secure source labels still work, with a warning."""

        def unavailable(size):
            raise NotImplementedError

        monkeypatch.setattr(identity.secrets, "token_bytes", unavailable)
        monkeypatch.setattr(identity, "_fallback_random", None)

        with pytest.warns(RandomnessUnavailableWarning):
            label = create_label()
        assert LABEL_PATTERN.match(label)

        table = IdentityTable()
        entity = Plain()
        table.set(entity, 1)
        assert table.get(entity) == 1
