from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sov_doctor import __version__ as TOOL_VERSION
from sov_doctor.completion import ServiceError, build_completion_service, ping
from sov_doctor.config import CompletionSettings
from sov_doctor.export import write_csv, write_standardized_workbook
from sov_doctor.grid import ALL_FORMATS, WorkbookError, load_workbook
from sov_doctor.pipeline import ProcessingResult, WorkbookInspection, inspect_workbook, process_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_ROW_ERRORS = 3
EXIT_SERVICE_UNAVAILABLE = 6


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SovDoctorArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if getattr(args, "verbose", False):
        level = logging.INFO
    if getattr(args, "quiet", False):
        level = logging.ERROR
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def timestamp_token() -> str:
    override = os.environ.get("SOV_DOCTOR_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "sov-doctor-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (WorkbookError, ImportError, UnicodeDecodeError, ValueError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def check_input(input_path: Path) -> None:
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    suffix = input_path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )


def completion_for(args: argparse.Namespace):
    return build_completion_service(CompletionSettings.from_env(), offline=getattr(args, "offline", False))


# ══════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════

def render_inspection_text(inspection: WorkbookInspection) -> str:
    lines = [
        "sov-doctor inspect",
        f"File: {inspection.source}",
        f"Sheets: {len(inspection.profiles)}",
        f"Classified by: {inspection.classification_source}",
    ]
    profiles = {profile.name: profile for profile in inspection.profiles}
    for item in inspection.classifications:
        marker = "*" if item in inspection.selected else "-"
        rows = profiles[item.sheet_name].row_count
        lines.append(f"{marker} {item.sheet_name}: {item.type} ({item.confidence:.2f}, {rows} rows) {item.reason}")
    if not inspection.selected:
        lines.append("No sheet qualifies as data; processing would fall back to the first sheet.")
    return "\n".join(lines) + "\n"


def render_process_text(result: ProcessingResult, output_path: Path | None) -> str:
    validation = result.validation
    lines = [
        "sov-doctor process",
        f"Input: {result.inspection.source}",
        f"Output: {output_path if output_path else '[dry run]'}",
        f"Sheets processed: {', '.join(table.name for table in result.processed_sheets)}",
        f"Mapping: {result.mapping.source} (confidence {result.confidence:.0%})",
        f"Rows: {validation.total_rows}",
        f"Successful: {validation.successful_rows}",
        f"Warnings: {validation.warning_rows}",
        f"Errors: {validation.error_rows}",
    ]
    unmapped = [header for header, target in result.mapping.columns.items() if target is None]
    if unmapped:
        lines.append("Unmapped columns: " + ", ".join(header or "[blank]" for header in unmapped))
    if validation.critical_missing:
        lines.append("Critical fields missing: " + ", ".join(validation.critical_missing))
    if validation.issues:
        shown = validation.issues[:10]
        lines.append(f"Issues (first {len(shown)} of {validation.total_issues}):")
        lines.extend(f"- row {issue.row} {issue.field}: {issue.issue} [{issue.severity}]" for issue in shown)
    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in result.warnings)
    return "\n".join(lines) + "\n"


# ══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = SovDoctorArgumentParser(
        prog="sov-doctor",
        description="Turn broker statement-of-values workbooks into a standard SOV table.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="Map, validate and export a workbook.")
    process.add_argument("input", help="Input workbook path")
    process.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    process.add_argument("--output", help="Explicit standardized output path")
    process.add_argument("--json-summary", dest="json_summary", help="Explicit JSON summary output path")
    process.add_argument("--format", choices=["xlsx", "csv"], default="xlsx", help="Standardized output format")
    process.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    process.add_argument("--dry-run", action="store_true", help="Run the pipeline without writing outputs")
    process.add_argument("--offline", action="store_true", help="Skip the completion service; use rule-based fallbacks")
    process.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    process.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    inspect = subparsers.add_parser("inspect", help="Profile and classify the sheets of a workbook.")
    inspect.add_argument("input", help="Input workbook path")
    inspect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    inspect.add_argument("--offline", action="store_true", help="Skip the completion service; use rule-based fallbacks")
    inspect.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    inspect.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    ping_parser = subparsers.add_parser("ping", help="Check the completion service connection.")
    ping_parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    subparsers.add_parser("version", help="Print version")
    return parser


def process_default_paths(args: argparse.Namespace, input_path: Path) -> tuple[Path, Path]:
    out_dir = determine_output_dir(args, input_path)
    output_path = Path(args.output) if args.output else out_dir / f"{input_path.stem}-standardized.{args.format}"
    summary_path = Path(args.json_summary) if args.json_summary else out_dir / "summary.json"
    return output_path, summary_path


def run_process(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input(input_path)
        output_path, summary_path = process_default_paths(args, input_path)
        if not args.dry_run:
            safe_output_path(output_path)
            safe_output_path(summary_path)

        result = process_workbook(load_workbook(input_path), completion_for(args))
        payload = result.to_dict(output_file=None if args.dry_run else str(output_path))

        if not args.dry_run:
            if args.format == "csv":
                write_csv(result.records, output_path)
            else:
                write_standardized_workbook(result.records, output_path, result.validation)
            write_json(summary_path, payload)

        if args.json:
            print(json_dumps(payload))
        else:
            emit_human(render_process_text(result, None if args.dry_run else output_path).rstrip(), quiet=args.quiet)
            if not args.dry_run:
                emit_human(f"Summary written: {summary_path}", quiet=args.quiet)
        return EXIT_ROW_ERRORS if result.validation.error_rows else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_inspect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input(input_path)
        inspection = inspect_workbook(load_workbook(input_path), completion_for(args))
        if args.json:
            print(json_dumps(inspection.to_dict()))
        else:
            emit_human(render_inspection_text(inspection).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_ping(args: argparse.Namespace) -> int:
    settings = CompletionSettings.from_env()
    if not settings.is_configured:
        eprint("Completion service not configured: set SOV_DOCTOR_OPENAI_ENDPOINT and SOV_DOCTOR_OPENAI_API_KEY")
        return EXIT_SERVICE_UNAVAILABLE
    try:
        reply = ping(build_completion_service(settings))
    except ServiceError as exc:
        eprint(f"Completion service check failed: {exc}")
        return EXIT_SERVICE_UNAVAILABLE
    print(reply.strip())
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "process":
            return run_process(args)
        if args.command == "inspect":
            return run_inspect(args)
        if args.command == "ping":
            return run_ping(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
