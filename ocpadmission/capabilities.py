"""Capability defaulting and validation for security context constraints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .field import FieldError, FieldPath, invalid

# A capability entry that allows every capability to be added.
ALLOW_ALL_CAPABILITIES = "*"


@dataclass
class Capabilities:
    """Capabilities a container adds to and drops from its defaults."""

    add: list[str] = field(default_factory=list)
    drop: list[str] = field(default_factory=list)


@dataclass
class SecurityContext:
    """The security settings of a container."""

    capabilities: Optional[Capabilities] = None


@dataclass
class Container:
    """The parts of a container that capability strategies look at."""

    security_context: Optional[SecurityContext] = None


def _child(path: Optional[FieldPath], name: str, *more: str) -> FieldPath:
    if path is None:
        return FieldPath(name).child(*more) if more else FieldPath(name)
    return path.child(name, *more)


class CapabilitiesStrategy(ABC):
    """A policy that defaults and validates container capabilities."""

    @abstractmethod
    def generate(self, pod: Any, container: Container) -> Optional[Capabilities]:
        """Return the capabilities the container should run with."""

    @abstractmethod
    def validate(
        self,
        fld_path: Optional[FieldPath],
        pod: Any,
        container: Optional[Container],
        capabilities: Optional[Capabilities],
    ) -> list[FieldError]:
        """Return the errors found in ``capabilities``."""


class DefaultCapabilities(CapabilitiesStrategy):
    """Adds default capabilities, forces required drops and checks allowed adds."""

    def __init__(
        self,
        default_add_capabilities: Optional[Iterable[str]] = None,
        required_drop_capabilities: Optional[Iterable[str]] = None,
        allowed_capabilities: Optional[Iterable[str]] = None,
    ) -> None:
        self.default_add_capabilities = tuple(default_add_capabilities or ())
        self.required_drop_capabilities = tuple(required_drop_capabilities or ())
        self.allowed_capabilities = tuple(allowed_capabilities or ())

    def generate(self, pod: Any, container: Container) -> Optional[Capabilities]:
        """Combine required and requested adds and drops.

        Default adds the container explicitly drops are left out. If nothing
        changes, the container's own capabilities object is returned as is.
        """
        container_caps: Optional[Capabilities] = None
        container_add: set[str] = set()
        container_drop: set[str] = set()
        context = container.security_context
        if context is not None and context.capabilities is not None:
            container_caps = context.capabilities
            container_add = set(container_caps.add)
            container_drop = set(container_caps.drop)

        default_add = set(self.default_add_capabilities) - container_drop
        combined_add = default_add | container_add
        combined_drop = set(self.required_drop_capabilities) | container_drop

        if len(combined_add) == len(container_add) and len(combined_drop) == len(container_drop):
            return container_caps
        return Capabilities(add=sorted(combined_add), drop=sorted(combined_drop))

    def validate(
        self,
        fld_path: Optional[FieldPath],
        pod: Any,
        container: Optional[Container],
        capabilities: Optional[Capabilities],
    ) -> list[FieldError]:
        """Check that adds are allowed and that required drops are present."""
        errors: list[FieldError] = []

        if capabilities is None:
            if not self.default_add_capabilities and not self.required_drop_capabilities:
                return errors
            errors.append(invalid(
                _child(fld_path, "capabilities"),
                None,
                "required capabilities are not set on the securityContext",
            ))
            return errors

        allowed_add = set(self.allowed_capabilities)
        if ALLOW_ALL_CAPABILITIES in allowed_add:
            return errors

        default_add = set(self.default_add_capabilities)
        for cap in capabilities.add:
            if cap not in default_add and cap not in allowed_add:
                errors.append(invalid(
                    _child(fld_path, "capabilities", "add"), cap, "capability may not be added"
                ))

        container_drops = set(capabilities.drop)
        for required in self.required_drop_capabilities:
            if required not in container_drops:
                errors.append(invalid(
                    _child(fld_path, "capabilities", "drop"),
                    list(capabilities.drop),
                    f"{required} is required to be dropped but was not found",
                ))
        return errors