"""
Command-line entry point.

    python -m converter convert --from fit --to tcx ride.fit ride.tcx
    python -m converter formats

The exit code is the run status: 0 success, 1 success with data loss,
2 decode/validation failure (or I/O error), 3 blocked by strict mode.
"""

import argparse
import logging
import pathlib
import sys
from typing import List, Optional

from application.use_cases import ConvertActivityUseCase, SourceFormat, TargetFormat
from converter.settings import Settings, get_settings
from domain.diagnostics import RunStatus
from infrastructure.validation import StructuralActivityValidator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="converter",
        description="Convert athletic activity files between FIT, TCX, GPX, CSV and YAML",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert one activity file")
    convert.add_argument(
        "--from", dest="source", required=True,
        choices=[f.value for f in SourceFormat], help="Source format",
    )
    convert.add_argument(
        "--to", dest="target", required=True,
        choices=[f.value for f in TargetFormat], help="Target format",
    )
    convert.add_argument("--strict", action="store_true", default=None,
                         help="Fail the run on any data-loss warning")
    convert.add_argument("--summary-only", action="store_true", default=None,
                         help="Skip per-sample data and GPS routes")
    convert.add_argument("--no-validate", action="store_true",
                         help="Skip structural validation of decoded activities")
    convert.add_argument("--fields", help="Comma-separated CSV metric columns")
    convert.add_argument("-v", "--verbose", action="store_true",
                         help="List every diagnostic and log at debug level")
    convert.add_argument("input", help="Input file path")
    convert.add_argument("output", help="Output file path")

    subparsers.add_parser("formats", help="List supported formats")
    return parser


def _print_formats() -> None:
    print("Readable: " + ", ".join(f.value for f in SourceFormat))
    print("Writable: " + ", ".join(f.value for f in TargetFormat))


def _convert(args: argparse.Namespace, settings: Settings) -> int:
    input_path = pathlib.Path(args.input)
    try:
        data = input_path.read_bytes()
    except OSError as e:
        print(f"Error: cannot read {input_path}: {e}", file=sys.stderr)
        return RunStatus.FAILED.exit_code

    use_case = ConvertActivityUseCase(
        validator=None if args.no_validate else StructuralActivityValidator(),
        settings=settings,
    )
    fields = [f.strip() for f in args.fields.split(",") if f.strip()] if args.fields else None
    result = use_case.execute(
        data,
        args.source,
        args.target,
        strict=args.strict,
        summary_only=args.summary_only,
        validate=False if args.no_validate else None,
        fields=fields,
    )

    if args.verbose:
        for diagnostic in result.diagnostics:
            print(str(diagnostic), file=sys.stderr)

    if result.success and result.output is not None:
        output_path = pathlib.Path(args.output)
        try:
            output_path.write_bytes(result.output)
        except OSError as e:
            print(f"Error: cannot write {output_path}: {e}", file=sys.stderr)
            return RunStatus.FAILED.exit_code

    hint = " (use --verbose to list them)" if result.diagnostics and not args.verbose else ""
    print(
        f"{result.status.value}: {len(result.activities)} activities, "
        f"{len(result.errors)} errors, {len(result.warnings)} warnings{hint}",
        file=sys.stderr,
    )
    return result.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    level = "DEBUG" if getattr(args, "verbose", False) else settings.log_level
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "formats":
        _print_formats()
        return 0
    return _convert(args, settings)


if __name__ == "__main__":
    sys.exit(main())
