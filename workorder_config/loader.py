"""
Configuration Loader (``workorder_config.loader``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, an optional override YAML file and
environment overrides, and parses the merged mapping into a frozen
``WorkOrderSettings``.  The single public entry point for runtime settings
is ``workorder_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``; there are no silent ignores.
* Monetary tolerances are parsed through ``Decimal(str(x))``, never float.
* ``compute_checksum`` is deterministic and excludes secrets.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from parsing or ``WorkOrderSettings``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import asdict, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from workorder_config.schema import MailSettings, WorkOrderSettings

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

# Environment variable -> (section or None, key, parser name)
ENV_OVERRIDES: dict[str, tuple[str | None, str, str]] = {
    "WORKORDER_DATABASE_URL": (None, "database_url", "str"),
    "WORKORDER_NUMBER_PREFIX": (None, "number_prefix", "str"),
    "WORKORDER_PORTAL_BASE_URL": (None, "vendor_portal_base_url", "str"),
    "WORKORDER_LOG_LEVEL": (None, "log_level", "str"),
    "SLACK_WEBHOOK_URL": (None, "slack_webhook_url", "str"),
    "MAIL_SERVER": ("mail", "host", "str"),
    "MAIL_PORT": ("mail", "port", "int"),
    "MAIL_USE_TLS": ("mail", "use_tls", "bool"),
    "MAIL_USERNAME": ("mail", "username", "str"),
    "MAIL_PASSWORD": ("mail", "password", "str"),
    "MAIL_FROM_EMAIL": ("mail", "from_email", "str"),
    "MAIL_FROM_NAME": ("mail", "from_name", "str"),
}

_SECRET_KEYS = frozenset({"password", "slack_webhook_url", "database_url"})
_DECIMAL_KEYS = frozenset({"amount_tolerance", "percentage_tolerance"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base``; the ``mail`` section merges key by key."""
    merged = dict(base)
    for key, value in override.items():
        if key == "mail" and isinstance(value, Mapping):
            merged["mail"] = {**dict(base.get("mail") or {}), **value}
        else:
            merged[key] = value
    return merged


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def apply_env_overrides(data: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Apply ``ENV_OVERRIDES`` present in ``env``.  Empty values are ignored."""
    result = merge_settings(data, {})
    for var, (section, key, kind) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        if kind == "int":
            value: Any = int(raw)
        elif kind == "bool":
            value = _parse_bool(raw)
        else:
            value = raw
        if section is None:
            result[key] = value
        else:
            result[section] = {**dict(result.get(section) or {}), key: value}
    return result


def _parse_decimal(value: Any, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{key} is not a number: {value!r}") from e


def parse_settings(data: Mapping[str, Any]) -> WorkOrderSettings:
    """
    Parse a merged mapping into ``WorkOrderSettings``.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    known = {f.name for f in fields(WorkOrderSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    mail_data = dict(data.get("mail") or {})
    mail_known = {f.name for f in fields(MailSettings)}
    mail_unknown = sorted(set(mail_data) - mail_known)
    if mail_unknown:
        raise ValueError(f"Unknown mail settings keys: {', '.join(mail_unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key == "mail":
            continue
        if value is None and key not in ("slack_webhook_url",):
            continue
        if key in _DECIMAL_KEYS:
            value = _parse_decimal(value, key)
        elif key == "supported_currencies":
            value = tuple(str(code).upper() for code in value)
        elif key == "default_currency":
            value = str(value).upper()
        kwargs[key] = value

    return WorkOrderSettings(mail=MailSettings(**mail_data), **kwargs)


def settings_fingerprint_data(settings: WorkOrderSettings) -> dict[str, Any]:
    """Return the settings as a dict with secrets removed."""
    data = asdict(settings)
    for key in _SECRET_KEYS:
        data.pop(key, None)
        data["mail"].pop(key, None)
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> WorkOrderSettings:
    """Load defaults, then ``path`` (if given), then ``env`` overrides."""
    data = load_yaml_file(DEFAULTS_FILE)
    if path is not None:
        data = merge_settings(data, load_yaml_file(path))
    if env is not None:
        data = apply_env_overrides(data, env)
    return parse_settings(data)
