#!/usr/bin/env python3
"""
Validate a settlement ledger exported as JSON.

Reads a JSON array of settlement records (or an object with a "records"
array), runs the validation engine, and prints the issues and statistics
as JSON.

Usage:
    python3 scripts/validate_ledger.py ledger.json
    python3 scripts/validate_ledger.py ledger.json --config engine.yaml --indent 2
    cat ledger.json | python3 scripts/validate_ledger.py -

Exit codes:
    0  no blocking issues
    1  at least one ERROR issue
    2  input or configuration could not be read
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from settlement_config import get_engine_config
from settlement_engines import has_blocking_issues, summarize_issues, validate_all
from settlement_kernel.exceptions import ConfigurationError
from settlement_kernel.logging_config import configure_logging


def load_records(source: str) -> list[dict[str, Any]]:
    """Read the record array from a file path, or stdin for ``-``."""
    if source == "-":
        data = json.load(sys.stdin)
    else:
        with open(source, encoding="utf-8") as fh:
            data = json.load(fh)

    if isinstance(data, dict):
        data = data.get("records")
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of records or an object with a 'records' array")
    for position, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"record {position} is not a JSON object")
    return data


def run(records: list[dict[str, Any]], config_path: Path | None) -> dict[str, Any]:
    config = get_engine_config(config_path)
    issues = validate_all(records, config=config)
    return {
        "config": {"name": config.name, "version": config.version},
        "recordCount": len(records),
        "statistics": summarize_issues(issues).to_dict(),
        "issues": [issue.to_dict() for issue in issues],
        "blocking": has_blocking_issues(issues),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate settlement records from a JSON file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("input", help="Path to a JSON file of records, or - for stdin")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Engine configuration YAML (default: bundled defaults)",
    )
    parser.add_argument("--indent", type=int, default=None, help="Indent the JSON output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level on stderr",
    )
    args = parser.parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level))

    try:
        records = load_records(args.input)
    except (OSError, ValueError) as exc:
        print(f"ERROR: cannot read records from {args.input}: {exc}", file=sys.stderr)
        return 2

    try:
        report = run(records, args.config)
    except (ConfigurationError, OSError, yaml.YAMLError) as exc:
        print(f"ERROR: cannot load configuration: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(report, ensure_ascii=False, indent=args.indent))
    return 1 if report["blocking"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
