"""Tests for schemasync/lib/registry.py - constraint name lookup."""

import pytest

from schemasync.lib.checks import MinimumValidator
from schemasync.lib.errors import UnknownConstraint
from schemasync.lib.registry import DEFAULT_HANDLERS, DEFAULT_REGISTRY, ConstraintRegistry


class TestConstraintRegistry:
    """Tests for ConstraintRegistry."""

    def test_default_names(self):
        """The default registry knows the eight well-known constraints."""
        assert set(DEFAULT_REGISTRY.names) == {
            "minimum",
            "maximum",
            "minLength",
            "maxLength",
            "pattern",
            "enum",
            "required",
            "unique",
        }

    def test_resolve(self):
        """Known names resolve to their constructor."""
        assert DEFAULT_REGISTRY.resolve("minimum") == MinimumValidator.from_constraint

    def test_unknown_name(self):
        """Unknown names raise UnknownConstraint with a suggestion."""
        with pytest.raises(UnknownConstraint, match="Unknown constraint 'foobar'") as exc_info:
            DEFAULT_REGISTRY.resolve("foobar")
        assert "minimum" in exc_info.value.suggestion

    def test_lookup_is_case_sensitive(self):
        """Constraint names are matched exactly."""
        assert "minlength" not in DEFAULT_REGISTRY
        assert "minLength" in DEFAULT_REGISTRY

    def test_with_handler_returns_new_registry(self):
        """with_handler leaves the original untouched."""

        def constructor(target, payload):
            return None

        extended = DEFAULT_REGISTRY.with_handler("foobar", constructor)
        assert "foobar" in extended
        assert "foobar" not in DEFAULT_REGISTRY
        assert len(extended) == len(DEFAULT_REGISTRY) + 1

    def test_without(self):
        """without drops one name."""
        reduced = DEFAULT_REGISTRY.without("unique")
        assert "unique" not in reduced
        assert "unique" in DEFAULT_REGISTRY

    def test_handlers_are_read_only(self):
        """Neither the default mapping nor a registry can be mutated in place."""
        with pytest.raises(TypeError):
            DEFAULT_HANDLERS["foobar"] = None  # type: ignore[index]
        registry = ConstraintRegistry({"minimum": MinimumValidator.from_constraint})
        with pytest.raises(TypeError):
            registry._handlers["maximum"] = None  # type: ignore[index]
