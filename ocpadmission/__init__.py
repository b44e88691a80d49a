"""Admission and authorization helpers: token scopes, label selectors, security context strategies and flag building."""

__version__ = "0.1.0"

__all__ = [
    "capabilities",
    "configflags",
    "field",
    "group",
    "labelselector",
    "lockfactory",
    "naming",
    "scope",
]