"""
Field constraints for comfyent entities.

A constraint is a named, pure predicate over a candidate value. Constraints
are evaluated by the mutation layer before anything is written; the store
never sees a value that failed one.

Example:
    >>> positive().check(3)
    True
    >>> not_empty().check("")
    False
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Constraint:
    """Named predicate over a field value.

    Attributes:
        name: Stable identifier reported in ValidationError.constraint
        check: Pure predicate, True when the value is acceptable
        describe: Human-readable description for error messages
    """

    name: str
    check: Callable[[Any], bool]
    describe: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"name": self.name, "describe": self.describe}


def not_empty() -> Constraint:
    return Constraint("not_empty", lambda v: len(v) > 0, "must not be empty")


def positive() -> Constraint:
    return Constraint("positive", lambda v: v > 0, "must be positive")


def negative() -> Constraint:
    return Constraint("negative", lambda v: v < 0, "must be negative")


def non_negative() -> Constraint:
    return Constraint("non_negative", lambda v: v >= 0, "must not be negative")


def min_value(bound: int | float) -> Constraint:
    return Constraint(f"min_value({bound})", lambda v: v >= bound, f"must be >= {bound}")


def max_value(bound: int | float) -> Constraint:
    return Constraint(f"max_value({bound})", lambda v: v <= bound, f"must be <= {bound}")


def min_len(n: int) -> Constraint:
    return Constraint(f"min_len({n})", lambda v: len(v) >= n, f"must have length >= {n}")


def max_len(n: int) -> Constraint:
    return Constraint(f"max_len({n})", lambda v: len(v) <= n, f"must have length <= {n}")


def match(pattern: str) -> Constraint:
    """Value must fully match a regular expression."""
    compiled = re.compile(pattern)
    return Constraint(
        f"match({pattern})",
        lambda v: compiled.fullmatch(v) is not None,
        f"must match {pattern!r}",
    )
