"""Group id strategies for security context constraints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .field import FieldError, FieldPath, invalid


@dataclass(frozen=True)
class IDRange:
    """An inclusive range of ids."""

    min: int
    max: int

    def __contains__(self, value: int) -> bool:
        return self.min <= value <= self.max


def _child(path: Optional[FieldPath], name: str) -> FieldPath:
    return FieldPath(name) if path is None else path.child(name)


class GroupStrategy(ABC):
    """A policy that generates and validates group ids."""

    @abstractmethod
    def generate(self, pod: Any) -> list[int]:
        """Return the groups to apply."""

    @abstractmethod
    def generate_single(self, pod: Any) -> Optional[int]:
        """Return a single group to apply, as used for the fs group."""

    @abstractmethod
    def validate(
        self, fld_path: Optional[FieldPath], pod: Any, groups: Optional[Sequence[int]]
    ) -> list[FieldError]:
        """Return the errors found in ``groups``."""


class MustRunAs(GroupStrategy):
    """Requires every group to fall within one of the configured ranges."""

    def __init__(self, ranges: Iterable[IDRange], field: str) -> None:
        self.ranges = tuple(ranges)
        if not self.ranges:
            raise ValueError("ranges must be supplied for MustRunAs")
        self.field = field

    def generate(self, pod: Any) -> list[int]:
        """Return the minimum of the first range."""
        return [self.ranges[0].min]

    def generate_single(self, pod: Any) -> Optional[int]:
        """Return the minimum of the first range."""
        return self.ranges[0].min

    def validate(
        self, fld_path: Optional[FieldPath], pod: Any, groups: Optional[Sequence[int]]
    ) -> list[FieldError]:
        errors: list[FieldError] = []
        groups = list(groups or ())
        path = _child(fld_path, self.field)
        if not groups and self.ranges:
            errors.append(invalid(path, groups, "unable to validate empty groups against required ranges"))
        for group in groups:
            if not any(group in rng for rng in self.ranges):
                errors.append(invalid(path, groups, f"{group} is not an allowed group"))
        return errors


class RunAsAny(GroupStrategy):
    """Places no requirement on groups."""

    def generate(self, pod: Any) -> list[int]:
        return []

    def generate_single(self, pod: Any) -> Optional[int]:
        return None

    def validate(
        self, fld_path: Optional[FieldPath], pod: Any, groups: Optional[Sequence[int]]
    ) -> list[FieldError]:
        return []