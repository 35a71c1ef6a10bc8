"""CLI entry point.

Usage:
    python -m schemasync validate data/gdp.csv --package data/datapackage.json
    python -m schemasync validate data/gdp.csv --package data/datapackage.json \\
        --columns Year Value --workers 4 --json
    python -m schemasync init data/gdp.csv --package data/datapackage.json

Exit codes:
    0  all checked cells passed
    1  findings were reported
    2  the run could not be performed (bad settings, unreadable files)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from schemasync.lib.errors import SchemaSyncError
from schemasync.lib.frame import read_csv_dataset
from schemasync.lib.inspector import InspectOptions, ValidationInspector
from schemasync.lib.observability import setup_logging
from schemasync.lib.schema import PackageMetadata
from schemasync.lib.settings import EngineSettings, load_settings

logger = logging.getLogger("schemasync")

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def _load_package(path: Path) -> PackageMetadata:
    with open(path, encoding="utf-8") as f:
        return PackageMetadata(json.load(f))


def cmd_validate(args: argparse.Namespace, settings: EngineSettings) -> int:
    package_path = Path(args.package)
    metadata = _load_package(package_path)
    dataset = read_csv_dataset(args.csv, metadata=metadata)

    if args.columns:
        columns = list(args.columns)
    elif dataset.schema is not None:
        columns = dataset.schema.field_names
    else:
        columns = dataset.column_model.column_names

    inspector = ValidationInspector(message_templates=settings.message_templates)
    options = InspectOptions(max_workers=args.workers or settings.max_workers)
    report = inspector.inspect(dataset, columns, options)

    if args.json:
        print(json.dumps(report.to_dict(include_errors=True), indent=2))
    else:
        for finding in report.findings:
            print(f"{finding.column}\trow {finding.row + 1}\t{finding.code}\t{finding.message}")
        for error in report.errors:
            print(f"skipped: {error.message}", file=sys.stderr)
        print(
            f"\n{len(report.findings)} finding(s) in {len(columns)} column(s) "
            f"of {len(dataset.rows)} row(s)"
        )
    return EXIT_OK if report.passed else EXIT_FINDINGS


def cmd_init(args: argparse.Namespace, settings: EngineSettings) -> int:
    package_path = Path(args.package)
    if package_path.exists() and not args.force:
        print(f"Error: {package_path} already exists (use --force to overwrite)", file=sys.stderr)
        return EXIT_ERROR

    dataset = read_csv_dataset(args.csv)
    metadata = PackageMetadata.new(dataset.name, dataset.column_model.column_names)
    metadata.resource["path"] = Path(args.csv).name

    package_path.parent.mkdir(parents=True, exist_ok=True)
    package_path.write_text(json.dumps(metadata.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info("Wrote %d string field(s) to %s", len(dataset.column_model), package_path)
    print(f"Created {package_path}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemasync",
        description="Validate tabular data against a data-package schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Validate every schema column
    python -m schemasync validate gdp.csv --package datapackage.json

    # Validate two columns on two workers, JSON output
    python -m schemasync validate gdp.csv --package datapackage.json --columns Year Value --workers 2 --json

    # Write an all-string package for a CSV
    python -m schemasync init gdp.csv --package datapackage.json
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to stderr")
    parser.add_argument("--settings", help="YAML settings file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a CSV file")
    validate.add_argument("csv", help="CSV file to validate")
    validate.add_argument("--package", required=True, help="datapackage.json with the schema")
    validate.add_argument("--columns", nargs="+", help="Columns to check (default: all schema fields)")
    validate.add_argument("--workers", type=int, help="Columns to check in parallel")
    validate.add_argument("--json", action="store_true", help="Print the report as JSON")
    validate.set_defaults(handler=cmd_validate)

    init = subparsers.add_parser("init", help="Create a package for a CSV file")
    init.add_argument("csv", help="CSV file to describe")
    init.add_argument("--package", required=True, help="Where to write datapackage.json")
    init.add_argument("--force", action="store_true", help="Overwrite an existing package")
    init.set_defaults(handler=cmd_init)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except SchemaSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        verbose=args.verbose,
        json_format=args.json_log or settings.logging.json_format,
        log_file=args.log_file or settings.logging.file,
        level=settings.logging.level,
    )

    try:
        return args.handler(args, settings)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except (SchemaSyncError, OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
