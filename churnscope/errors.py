"""
Exceptions raised (or collected) by the churn pipeline.
"""

from __future__ import annotations

from typing import Hashable, Iterable, List, Optional


class ChurnScopeError(ValueError):
    """Base class for all pipeline errors."""


class SchemaError(ChurnScopeError):
    """A column required for feature derivation is absent from the input."""

    def __init__(self, missing: Iterable[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class FieldError(ChurnScopeError):
    """
    A single value could not be coerced to its column type.

    Never raised by the normalizer: instances are collected and returned
    alongside the normalized table, and the value itself becomes absent.
    """

    def __init__(self, column: str, row: Hashable, value: object, expected: str):
        self.column = column
        self.row = row
        self.value = value
        self.expected = expected
        super().__init__(f"row {row}: cannot read {value!r} in '{column}' as {expected}")


class EmptyGroupError(ChurnScopeError):
    """Churn rate requested for a group with no records."""

    def __init__(self, group: Optional[object] = None):
        self.group = group
        where = f" for group {group!r}" if group is not None else ""
        super().__init__(f"Churn rate is undefined{where}: group has no records")
