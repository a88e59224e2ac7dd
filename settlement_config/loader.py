"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Loads a YAML engine configuration file and parses it into the frozen
``settlement_config.schema.EngineConfig``.  Missing sections fall back to
the schema defaults; present sections are parsed strictly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed only by
``settlement_config.get_engine_config``.  Depends on the kernel for
Decimal parsing and record field names; never on engines or services.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structurally invalid config  -> ``ConfigurationError``.

Audit relevance
---------------
``compute_checksum`` gives a deterministic SHA-256 identity for the parsed
configuration so a validation run can be tied to the exact rules it used.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import (
    BusinessThresholds,
    EngineConfig,
    FieldRange,
)
from settlement_kernel.domain.records import NUMERIC_FIELDS, TEXT_FIELDS
from settlement_kernel.domain.values import parse_decimal
from settlement_kernel.exceptions import ConfigurationError

_THRESHOLD_KEYS = tuple(BusinessThresholds.__dataclass_fields__)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("top level must be a mapping", source=str(path))
    return data


def _decimal(value: Any, what: str):
    parsed, ok = parse_decimal(value)
    if not ok or parsed is None:
        raise ConfigurationError(f"{what} is not a number: {value!r}")
    return parsed


def parse_field_range(data: dict[str, Any]) -> FieldRange:
    """Parse one ``field_ranges`` entry."""
    try:
        name = data["field"]
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"field range without 'field': {data!r}") from exc
    if name not in NUMERIC_FIELDS:
        raise ConfigurationError(f"field range for unknown numeric field {name!r}")
    max_raw = data.get("max")
    try:
        return FieldRange(
            field=name,
            min_value=_decimal(data.get("min", "0"), f"{name}.min"),
            max_value=_decimal(max_raw, f"{name}.max") if max_raw is not None else None,
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def parse_thresholds(data: dict[str, Any]) -> BusinessThresholds:
    """Parse the ``thresholds`` section; unknown keys are rejected."""
    unknown = sorted(set(data) - set(_THRESHOLD_KEYS))
    if unknown:
        raise ConfigurationError(f"unknown threshold keys: {unknown}")
    values = {key: _decimal(value, f"thresholds.{key}") for key, value in data.items()}
    thresholds = BusinessThresholds(**values)
    if thresholds.fee_ratio_warning > thresholds.max_fee_ratio:
        raise ConfigurationError("fee_ratio_warning must not exceed max_fee_ratio")
    if thresholds.min_settlement_ratio > thresholds.max_settlement_ratio:
        raise ConfigurationError("min_settlement_ratio must not exceed max_settlement_ratio")
    return thresholds


def parse_month_patterns(patterns: list[Any]) -> tuple[str, ...]:
    """Each pattern must be a valid regular expression."""
    parsed: list[str] = []
    for pattern in patterns:
        try:
            re.compile(str(pattern))
        except re.error as exc:
            raise ConfigurationError(f"invalid month pattern {pattern!r}: {exc}") from exc
        parsed.append(str(pattern))
    if not parsed:
        raise ConfigurationError("month_patterns must not be empty")
    return tuple(parsed)


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse an ``EngineConfig`` from a dict.

    Postconditions:
        - Sections absent from ``data`` keep the schema defaults.
    Raises:
        ConfigurationError: for unknown fields, bad numbers or bad patterns.
    """
    defaults = EngineConfig()
    kwargs: dict[str, Any] = {}

    if "name" in data:
        kwargs["name"] = str(data["name"])
    if "version" in data:
        kwargs["version"] = int(data["version"])

    if "field_ranges" in data:
        kwargs["field_ranges"] = tuple(
            parse_field_range(entry) for entry in data["field_ranges"] or ()
        )

    if "thresholds" in data:
        kwargs["thresholds"] = parse_thresholds(data["thresholds"] or {})

    if "month_patterns" in data:
        kwargs["month_patterns"] = parse_month_patterns(data["month_patterns"] or [])

    if "rate_fields" in data:
        rate_fields = tuple(str(name) for name in data["rate_fields"] or ())
        unknown = [name for name in rate_fields if name not in NUMERIC_FIELDS]
        if unknown:
            raise ConfigurationError(f"unknown rate fields: {unknown}")
        kwargs["rate_fields"] = rate_fields

    if "field_labels" in data:
        labels = data["field_labels"] or {}
        known = set(NUMERIC_FIELDS) | set(TEXT_FIELDS) | {"fees", "duplicate"}
        unknown = sorted(set(labels) - known)
        if unknown:
            raise ConfigurationError(f"labels for unknown fields: {unknown}")
        kwargs["field_labels"] = tuple((str(k), str(v)) for k, v in labels.items())

    fmt = data.get("settlement_number_format", defaults.settlement_number_format)
    if not fmt:
        raise ConfigurationError("settlement_number_format must not be empty")
    kwargs["settlement_number_format"] = str(fmt)

    return EngineConfig(**kwargs)


def compute_checksum(config: EngineConfig) -> str:
    """Deterministic SHA-256 of the parsed configuration."""
    canonical = json.dumps(asdict(config), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
