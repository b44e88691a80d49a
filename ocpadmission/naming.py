"""Validation of user, group and label names."""

from __future__ import annotations

import re

_NAME_MAY_NOT_BE = (".", "..")
_NAME_MAY_NOT_CONTAIN = ("/", "%")

_QUALIFIED_NAME_MAX_LENGTH = 63
_LABEL_VALUE_MAX_LENGTH = 63
_DNS1123_SUBDOMAIN_MAX_LENGTH = 253

_QUALIFIED_NAME_RE = re.compile(r"([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]")
_LABEL_VALUE_RE = re.compile(r"(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?")
_DNS1123_LABEL = r"[a-z0-9]([-a-z0-9]*[a-z0-9])?"
_DNS1123_SUBDOMAIN_RE = re.compile(_DNS1123_LABEL + r"(\." + _DNS1123_LABEL + r")*")

_EMPTY = "must be non-empty"
_QUALIFIED_NAME_MSG = (
    "must consist of alphanumeric characters, '-', '_' or '.', "
    "and must start and end with an alphanumeric character"
)
_SUBDOMAIN_MSG = (
    "a lowercase RFC 1123 subdomain must consist of lower case alphanumeric "
    "characters, '-' or '.', and must start and end with an alphanumeric character"
)


def _max_len(length: int) -> str:
    return f"must be no more than {length} characters"


def _forbidden_contents(name: str) -> list[str]:
    return [f"may not contain '{bad}'" for bad in _NAME_MAY_NOT_CONTAIN if bad in name]


def validate_path_segment_name(name: str, prefix: bool) -> list[str]:
    """Return the reasons ``name`` cannot be used as a path segment."""
    if not prefix and name in _NAME_MAY_NOT_BE:
        return [f"may not be '{name}'"]
    return _forbidden_contents(name)


def validate_user_name(name: str, prefix: bool) -> list[str]:
    """Return the reasons ``name`` is not a valid user name."""
    reasons = validate_path_segment_name(name, False)
    if reasons:
        return reasons
    if ":" in name and not name.startswith("b64:"):
        return ['usernames that contain ":" must begin with "b64:"']
    if name == "~":
        return ['may not equal "~"']
    return []


def validate_group_name(name: str, prefix: bool) -> list[str]:
    """Return the reasons ``name`` is not a valid group name."""
    reasons = validate_path_segment_name(name, False)
    if reasons:
        return reasons
    if ":" in name:
        return ['may not contain ":"']
    if name == "~":
        return ['may not equal "~"']
    return []


def _dns1123_subdomain_errors(value: str) -> list[str]:
    errors = []
    if len(value) > _DNS1123_SUBDOMAIN_MAX_LENGTH:
        errors.append(_max_len(_DNS1123_SUBDOMAIN_MAX_LENGTH))
    if not _DNS1123_SUBDOMAIN_RE.fullmatch(value):
        errors.append(_SUBDOMAIN_MSG)
    return errors


def is_qualified_name(value: str) -> list[str]:
    """Return the reasons ``value`` is not a name with an optional DNS subdomain prefix."""
    errors: list[str] = []
    parts = value.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix:
            errors.append("prefix part " + _EMPTY)
        else:
            errors.extend("prefix part " + msg for msg in _dns1123_subdomain_errors(prefix))
    else:
        errors.append(
            "a qualified name " + _QUALIFIED_NAME_MSG
            + " with an optional DNS subdomain prefix and '/'"
        )
        return errors

    if not name:
        errors.append("name part " + _EMPTY)
    elif len(name) > _QUALIFIED_NAME_MAX_LENGTH:
        errors.append("name part " + _max_len(_QUALIFIED_NAME_MAX_LENGTH))
    if not _QUALIFIED_NAME_RE.fullmatch(name):
        errors.append("name part " + _QUALIFIED_NAME_MSG)
    return errors


def is_valid_label_value(value: str) -> list[str]:
    """Return the reasons ``value`` is not a valid label value; empty is allowed."""
    errors = []
    if len(value) > _LABEL_VALUE_MAX_LENGTH:
        errors.append(_max_len(_LABEL_VALUE_MAX_LENGTH))
    if not _LABEL_VALUE_RE.fullmatch(value):
        errors.append("a valid label " + _QUALIFIED_NAME_MSG)
    return errors