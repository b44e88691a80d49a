"""Helpers that turn configuration into command-line flag maps."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import MutableMapping

_log = logging.getLogger(__name__)

DEFAULT_AUDIT_POLICY_FILE_PATH = "openshift.local.audit/policy.yaml"

FlagArgs = MutableMapping[str, list]


@dataclass
class AuditConfig:
    """Audit settings for an API server."""

    enabled: bool = False
    audit_file_path: str = ""
    maximum_file_retention_days: int = 0
    maximum_retained_files: int = 0
    maximum_file_size_megabytes: int = 0
    policy_file: str = ""
    policy_configuration: bytes = b""
    log_format: str = ""
    web_hook_kube_config: str = ""
    web_hook_mode: str = ""


def args_with_prefix(args: FlagArgs, prefix: str) -> dict[str, list[str]]:
    """Return copies of the entries whose key starts with ``prefix`` and that hold values."""
    return {key: list(values) for key, values in args.items() if key.startswith(prefix) and values}


def set_if_unset(cmd_line_args: FlagArgs, key: str, *args: str) -> None:
    """Set ``key`` to the given values unless it is already present."""
    if key not in cmd_line_args:
        cmd_line_args[key] = list(args)


def to_flag_slice(args: FlagArgs) -> list[str]:
    """Render the map as ``--key=value`` flags, keys sorted, values in order."""
    return [f"--{key}={value}" for key in sorted(args) for value in args[key]]


def _write_policy_file(path: str, content: bytes) -> None:
    try:
        os.makedirs(os.path.dirname(path) or ".", mode=0o755, exist_ok=True)
    except OSError as err:
        _log.error("creating audit policy directory: %s", err)
    try:
        with open(path, "wb") as handle:
            handle.write(content)
        os.chmod(path, 0o644)
    except OSError as err:
        _log.error("writing audit policy file: %s", err)


def audit_flags(config: AuditConfig, args: FlagArgs) -> FlagArgs:
    """Add the audit flags implied by ``config`` to ``args`` and return it."""
    if not config.enabled:
        return args

    policy_path = config.policy_file
    raw = config.policy_configuration
    if raw and raw != b"null":
        if not policy_path:
            policy_path = DEFAULT_AUDIT_POLICY_FILE_PATH
        _write_policy_file(policy_path, raw)

    set_if_unset(args, "audit-log-maxbackup", str(int(config.maximum_retained_files)))
    set_if_unset(args, "audit-log-maxsize", str(int(config.maximum_file_size_megabytes)))
    set_if_unset(args, "audit-log-maxage", str(int(config.maximum_file_retention_days)))
    set_if_unset(args, "audit-log-path", config.audit_file_path or "-")
    if policy_path:
        set_if_unset(args, "audit-policy-file", policy_path)
    if config.log_format:
        set_if_unset(args, "audit-log-format", config.log_format)
    if config.web_hook_mode:
        set_if_unset(args, "audit-webhook-mode", config.web_hook_mode)
    set_if_unset(args, "audit-webhook-config-file", config.web_hook_kube_config)
    return args