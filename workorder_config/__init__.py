"""
workorder_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Services receive a ``WorkOrderSettings``
    instance from their caller and never read YAML files or environment
    variables themselves.

Architecture position:
    Configuration -- sits above ``workorder_kernel`` and below
    ``workorder_modules``.  The kernel and the engines MUST NEVER import
    from ``workorder_config``.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Deterministic checksum: the same effective settings always produce
      the same checksum.  Secrets are excluded from it.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``yaml.YAMLError`` -- override file is not valid YAML.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``WORKORDER_CONFIG_TRACE`` log entry carrying the checksum, the number
    prefix and the database dialect.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from workorder_config.loader import (
    compute_checksum,
    load_settings,
    settings_fingerprint_data,
)
from workorder_config.schema import MailSettings, WorkOrderSettings
from workorder_kernel.logging_config import configure_logging, get_logger

_logger = get_logger("config")


def get_active_settings(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> WorkOrderSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional YAML file whose keys override the packaged
            defaults.
        env: Environment mapping to read overrides from.  Defaults to
            ``os.environ``.

    Returns:
        A frozen ``WorkOrderSettings``.
    """
    settings = load_settings(
        config_path,
        env if env is not None else os.environ,
    )
    configure_logging(level=settings.log_level)
    checksum = compute_checksum(settings_fingerprint_data(settings))

    _logger.info(
        "WORKORDER_CONFIG_TRACE",
        extra={
            "trace_type": "WORKORDER_CONFIG_TRACE",
            "checksum": checksum,
            "config_path": str(config_path) if config_path else None,
            "number_prefix": settings.number_prefix,
            "database_dialect": settings.database_url.split(":", 1)[0],
            "slack_enabled": settings.slack_webhook_url is not None,
            "mail_enabled": settings.mail.host is not None,
        },
    )
    return settings


__all__ = [
    "MailSettings",
    "WorkOrderSettings",
    "get_active_settings",
]
