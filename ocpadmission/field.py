"""Field paths and validation errors attached to them."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

INVALID = "Invalid"


@dataclass(frozen=True)
class FieldPath:
    """A dotted path to a field inside an object, built from the root down."""

    name: str
    parent: Optional[FieldPath] = None

    def child(self, name: str, *args: str) -> FieldPath:
        """Return a path that descends from this one through each given name."""
        path = FieldPath(name, self)
        for more in args:
            path = FieldPath(more, path)
        return path

    def __str__(self) -> str:
        names = []
        node: Optional[FieldPath] = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return ".".join(reversed(names))


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return repr(value)


@dataclass
class FieldError(ValueError):
    """A validation failure for one field."""

    field: str
    bad_value: Any
    detail: str
    type: str = INVALID

    def __str__(self) -> str:
        body = f"{self.type} value: {_format_value(self.bad_value)}"
        if self.detail:
            body = f"{body}: {self.detail}"
        return f"{self.field}: {body}" if self.field else body


def invalid(path: Optional[FieldPath], value: Any, detail: str) -> FieldError:
    """Build an error saying that the value at ``path`` is invalid."""
    return FieldError(str(path) if path is not None else "", value, detail)