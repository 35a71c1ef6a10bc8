"""Constraint-name to validator-constructor registry.

The registry is built once and never mutated. Tests and embedders that
need another set of checks derive a new registry with ``with_handler``
and pass it to the inspector explicitly.

To add a new constraint:
1. Write a validator in ``schemasync.lib.checks`` with a
   ``from_constraint(target, payload)`` classmethod
2. Add it to ``DEFAULT_HANDLERS`` below
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, Tuple

from schemasync.lib.checks import (
    ColumnTarget,
    EnumValidator,
    MaximumValidator,
    MaxLengthValidator,
    MinimumValidator,
    MinLengthValidator,
    PatternValidator,
    RequiredValidator,
    UniqueValidator,
    Validator,
)
from schemasync.lib.errors import UnknownConstraint

logger = logging.getLogger(__name__)

__all__ = [
    "ValidatorConstructor",
    "ConstraintRegistry",
    "DEFAULT_HANDLERS",
    "DEFAULT_REGISTRY",
]

ValidatorConstructor = Callable[[ColumnTarget, Any], Validator]

DEFAULT_HANDLERS: Mapping[str, ValidatorConstructor] = MappingProxyType({
    "minimum": MinimumValidator.from_constraint,
    "maximum": MaximumValidator.from_constraint,
    "minLength": MinLengthValidator.from_constraint,
    "maxLength": MaxLengthValidator.from_constraint,
    "pattern": PatternValidator.from_constraint,
    "enum": EnumValidator.from_constraint,
    "required": RequiredValidator.from_constraint,
    "unique": UniqueValidator.from_constraint,
})


class ConstraintRegistry:
    """Immutable mapping from constraint name to validator constructor."""

    def __init__(self, handlers: Mapping[str, ValidatorConstructor]):
        self._handlers: Mapping[str, ValidatorConstructor] = MappingProxyType(dict(handlers))

    def resolve(self, name: str) -> ValidatorConstructor:
        """Return the constructor registered under ``name``.

        Raises:
            UnknownConstraint: If nothing is registered under ``name``
        """
        try:
            return self._handlers[name]
        except KeyError:
            raise UnknownConstraint(
                name,
                suggestion=f"Known constraints: {', '.join(self.names)}",
            ) from None

    def with_handler(self, name: str, constructor: ValidatorConstructor) -> "ConstraintRegistry":
        """Return a new registry with ``name`` added or replaced."""
        handlers = dict(self._handlers)
        handlers[name] = constructor
        return ConstraintRegistry(handlers)

    def without(self, name: str) -> "ConstraintRegistry":
        """Return a new registry with ``name`` removed."""
        return ConstraintRegistry({k: v for k, v in self._handlers.items() if k != name})

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


DEFAULT_REGISTRY = ConstraintRegistry(DEFAULT_HANDLERS)
