"""
settlement_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_engine_config()`` is the only function that reads configuration
    files.  It returns a frozen ``EngineConfig`` that callers pass into
    the engines explicitly; engines never read configuration themselves.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``ConfigurationError`` -- the YAML content is structurally invalid.

Audit relevance:
    Every successful call emits a ``SETTLEMENT_CONFIG_TRACE`` log entry with
    the config name, version, checksum and source path.
"""

from __future__ import annotations

import logging
from pathlib import Path

from settlement_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_engine_config,
)
from settlement_config.schema import BusinessThresholds, EngineConfig, FieldRange

_logger = logging.getLogger("settlement_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "engine.yaml"


def get_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Load and parse an engine configuration file.

    Args:
        path: YAML file to load.  Defaults to the bundled
            ``defaults/engine.yaml``.

    Returns:
        EngineConfig -- frozen, ready to pass into the engines.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the content is invalid.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_engine_config(load_yaml_file(source))

    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "checksum": compute_checksum(config),
            "source": str(source),
        },
    )
    return config


__all__ = [
    "BusinessThresholds",
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "FieldRange",
    "compute_checksum",
    "get_engine_config",
]
