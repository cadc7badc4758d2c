"""
reimburse_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It loads a YAML set, validates it, and logs a config trace carrying the
    checksum so every decision can be tied to the configuration in force.

Architecture position:
    Sits above ``reimburse_kernel``.  The kernel never imports this package;
    ``reimburse_config.bridges`` translates the config into kernel inputs.

Failure modes:
    - ``FileNotFoundError``: the configuration file does not exist.
    - ``yaml.YAMLError``: malformed YAML.
    - ``ConfigurationError``: parse or validation problems, all listed.
"""

from __future__ import annotations

import logging
from pathlib import Path

from reimburse_config.loader import load_config_file
from reimburse_config.schema import InvoiceRecognitionSettings, ReimbursementConfig
from reimburse_config.validator import validate_config

_logger = logging.getLogger("reimburse_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"


def get_active_config(path: Path | str | None = None) -> ReimbursementConfig:
    """Load, validate and return the active configuration.

    Args:
        path: Override YAML file.  Defaults to ``reimburse_config/sets/default.yaml``.
    """
    source = Path(path) if path is not None else _DEFAULT_CONFIG_FILE

    config = load_config_file(source)
    validate_config(config, source=str(source))

    _logger.info(
        "REIMBURSE_CONFIG_TRACE",
        extra={
            "trace_type": "REIMBURSE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "escalation_threshold": str(config.escalation_threshold),
            "category_count": len(config.categories),
        },
    )
    return config


__all__ = [
    "InvoiceRecognitionSettings",
    "ReimbursementConfig",
    "get_active_config",
]
