"""
Step results carrying accumulated errors.

Bulk import steps must distinguish three outcomes without raising: no
failures, one fatal failure, and any number of non-fatal warnings.  A
:class:`Result` holds the step's value together with the ordered list of
errors it produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from .errors import BlueprintError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    value: Optional[T] = None
    errors: List[BlueprintError] = field(default_factory=list)
    fatal: bool = False

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BlueprintError, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value, errors=[error], fatal=True)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def warnings(self) -> List[BlueprintError]:
        return [] if self.fatal else list(self.errors)

    def warn(self, error: BlueprintError) -> None:
        self.errors.append(error)
