"""
sitequota/models/limit.py

Entitlement value for one resource: a non-negative cap or unlimited.
"""

from dataclasses import dataclass
from typing import Optional, Union

from sitequota.core.errors import MalformedInputError


@dataclass(frozen=True)
class Numeric:
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise MalformedInputError(f"Limit must be a non-negative integer, got {self.value!r}")

    def to_json(self) -> int:
        return self.value


@dataclass(frozen=True)
class Unlimited:
    def to_json(self) -> str:
        return "unlimited"


UNLIMITED = Unlimited()

Limit = Union[Numeric, Unlimited]


def limit_from_stored(value: Optional[int]) -> Limit:
    """Map a nullable stored column to a Limit (NULL means unlimited)."""
    if value is None:
        return UNLIMITED
    return Numeric(value)
