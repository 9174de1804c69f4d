from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loan_report import __version__ as TOOL_VERSION
from loan_report.contracts import build_contract, build_payload
from loan_report.pdf_export import pdf_filename
from loan_report.projection import RIGHT, ProjectedTable, Table, project_export, project_preview, table_cells
from loan_report.roles import DEFAULT_SELECTED_HEADERS, default_selection
from loan_report.services import ReportServices, default_services

DEFAULT_REPORT_TITLE = "Account Portfolio (Lender)"
SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}
CONFIG_KEYS = {"title", "columns"}
EXPORT_FORMATS = ("pdf", "png", "both")

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_RENDER_FAILED = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class LoanReportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def emit_verbose(args: argparse.Namespace, message: str) -> None:
    if getattr(args, "verbose", False) and not getattr(args, "quiet", False):
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("LOAN_REPORT_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "loan-report-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_bytes(path: Path, payload: bytes) -> None:
    ensure_parent(path)
    path.write_bytes(payload)


def write_json(path: Path, payload: Any) -> None:
    ensure_parent(path)
    path.write_text(json_dumps(payload), encoding="utf-8")


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: "1970-01-01T00:00:00Z" if key == "generated_at" else remove_generated_at(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (ImportError, UnicodeDecodeError, ValueError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


# ── Configuration ──────────────────────────────────────────────────────────────

def load_report_config(config_path: Path | None) -> dict[str, Any]:
    if config_path is None:
        return {}
    if not config_path.exists():
        raise CliError(f"Config not found: {config_path}", EXIT_COMMAND_ERROR)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise CliError("Config must be .json, .yml, or .yaml", EXIT_COMMAND_ERROR)
    if suffix in {".yml", ".yaml"}:
        raise CliError("YAML configs are not supported yet. Use JSON for now.", EXIT_COMMAND_ERROR)
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise CliError(f"Could not read config: {exc}", EXIT_COMMAND_ERROR) from exc
    if not isinstance(payload, dict):
        raise CliError("Config root must be a JSON object.", EXIT_COMMAND_ERROR)
    unknown = sorted(set(payload) - CONFIG_KEYS)
    if unknown:
        raise CliError(f"Unknown config keys: {', '.join(unknown)}", EXIT_COMMAND_ERROR)
    if "title" in payload and not isinstance(payload["title"], str):
        raise CliError("Config 'title' must be a string.", EXIT_COMMAND_ERROR)
    columns = payload.get("columns")
    if columns is not None and (
        not isinstance(columns, list) or not all(isinstance(item, str) for item in columns)
    ):
        raise CliError("Config 'columns' must be a list of header names.", EXIT_COMMAND_ERROR)
    return payload


def parse_columns_flag(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def resolve_columns(args: argparse.Namespace, config: dict[str, Any], table: Table) -> list[str]:
    if getattr(args, "columns", None):
        selected = parse_columns_flag(args.columns)
    elif config.get("columns") is not None:
        selected = list(config["columns"])
    else:
        selected = default_selection(table.headers)

    unknown = table.unknown_headers(selected)
    if unknown:
        raise CliError(
            f"Unknown column(s): {', '.join(unknown)}. Available: {', '.join(table.headers)}",
            EXIT_COMMAND_ERROR,
        )
    duplicates = sorted({header for header in selected if selected.count(header) > 1})
    if duplicates:
        raise CliError(f"Column selected more than once: {', '.join(duplicates)}", EXIT_COMMAND_ERROR)
    return selected


def resolve_title(args: argparse.Namespace, config: dict[str, Any]) -> str:
    if getattr(args, "title", None) is not None:
        return args.title
    return config.get("title", DEFAULT_REPORT_TITLE)


def require_columns(selected: list[str]) -> None:
    if not selected:
        raise CliError(
            "No columns selected. Pass --columns or add 'columns' to the config file.",
            EXIT_COMMAND_ERROR,
        )


# ── Rendering ──────────────────────────────────────────────────────────────────

def render_preview_text(projected: ProjectedTable) -> str:
    grid = table_cells(projected)
    widths = [max(len(row[idx]) for row in grid) for idx in range(len(projected.columns))]

    def line(cells: list[str], aligns: list[str]) -> str:
        parts = [
            text.rjust(width) if align == RIGHT else text.ljust(width)
            for text, align, width in zip(cells, aligns, widths)
        ]
        return "  ".join(parts).rstrip()

    rule = "  ".join("-" * width for width in widths)
    lines = [line(grid[0], projected.alignments), rule]
    lines.extend(line(row, projected.alignments) for row in grid[1:-1])
    lines.append(rule)
    lines.append(line(grid[-1], [cell.align for cell in projected.footer]))
    if projected.indicator:
        lines.append("")
        lines.append(projected.indicator)
    return "\n".join(lines) + "\n"


def render_summary_text(payload: dict[str, Any]) -> str:
    totals = payload["totals"]
    lines = [
        "loan-report summary",
        f"Input: {payload['run_summary']['input_file']}",
        f"Columns: {', '.join(column['header'] for column in payload['columns']) or '[none]'}",
        f"Loans: {totals['loan_count']}",
        f"Total regular payment: {totals['total_regular_payment']:,.2f}",
        f"Total loan balance: {totals['total_loan_balance']:,.2f}",
        f"Portfolio yield: {totals['portfolio_yield']:.4f}%",
    ]
    return "\n".join(lines) + "\n"


# ── Commands ───────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = LoanReportArgumentParser(prog="loan-report", description="Loan portfolio tables as PDF or PNG reports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    columns = subparsers.add_parser("columns", help="List the columns of a spreadsheet.")
    columns.add_argument("input", help="Input file path")
    columns.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    preview = subparsers.add_parser("preview", help="Print the first rows of the report with totals.")
    preview.add_argument("input", help="Input file path")
    preview.add_argument("--columns", help="Comma-separated headers, in report order")
    preview.add_argument("--config", help="JSON config with 'title' and/or 'columns'")
    preview.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    preview.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    preview.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    summary = subparsers.add_parser("summary", help="Compute portfolio totals.")
    summary.add_argument("input", help="Input file path")
    summary.add_argument("--columns", help="Comma-separated headers, in report order")
    summary.add_argument("--config", help="JSON config with 'title' and/or 'columns'")
    summary.add_argument("--output", help="Write the JSON summary to this path")
    summary.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    summary.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    summary.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    export = subparsers.add_parser("export", help="Write the full report as PDF and/or PNG.")
    export.add_argument("input", help="Input file path")
    export.add_argument("--columns", help="Comma-separated headers, in report order")
    export.add_argument("--title", help=f"Report title (default: {DEFAULT_REPORT_TITLE!r})")
    export.add_argument("--config", help="JSON config with 'title' and/or 'columns'")
    export.add_argument("--format", choices=EXPORT_FORMATS, default="pdf", help="Output format")
    export.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    export.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    export.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    export.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    config = subparsers.add_parser("config", help="Generate a starter config.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="loan-report.json", help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def load_input(args: argparse.Namespace, services: ReportServices) -> tuple[Path, Table]:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    table = services.decode(input_path)
    emit_verbose(args, f"Loaded {len(table.rows)} rows, {len(table.headers)} columns from {input_path}")
    return input_path, table


def run_columns(args: argparse.Namespace, services: ReportServices) -> int:
    input_path, table = load_input(args, services)
    contract = build_contract("loan_report.columns")
    payload = {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "input": str(input_path),
        "headers": table.headers,
        "default_selection": default_selection(table.headers),
        "rows": len(table.rows),
    }
    if args.json:
        print(json_dumps(payload))
    else:
        default = set(payload["default_selection"])
        for header in table.headers:
            print(f"{'*' if header in default else ' '} {header}")
        eprint(f"{len(table.rows)} rows loaded; * marks the default selection")
    return EXIT_SUCCESS


def run_preview(args: argparse.Namespace, services: ReportServices) -> int:
    config = load_report_config(Path(args.config) if args.config else None)
    input_path, table = load_input(args, services)
    selected = resolve_columns(args, config, table)
    require_columns(selected)
    projected = project_preview(table, selected)
    if args.json:
        payload = build_payload(
            "loan_report.summary",
            projected,
            command="preview",
            input_path=input_path,
            title=resolve_title(args, config),
        )
        payload["rows"] = [list(row) for row in projected.rows]
        payload["indicator"] = projected.indicator
        print(json_dumps(remove_generated_at(payload)))
    else:
        sys.stdout.write(render_preview_text(projected))
    return EXIT_SUCCESS


def run_summary(args: argparse.Namespace, services: ReportServices) -> int:
    config = load_report_config(Path(args.config) if args.config else None)
    input_path, table = load_input(args, services)
    selected = resolve_columns(args, config, table)
    projected = project_export(table, selected)
    output_path = safe_output_path(Path(args.output)) if args.output else None
    payload = build_payload(
        "loan_report.summary",
        projected,
        command="summary",
        input_path=input_path,
        title=resolve_title(args, config),
        output_paths=[output_path] if output_path else None,
    )
    payload = remove_generated_at(payload)
    if output_path:
        write_json(output_path, payload)
        emit_human(f"Summary written: {output_path}", quiet=args.quiet)
    if args.json:
        print(json_dumps(payload))
    else:
        emit_human(render_summary_text(payload).rstrip(), quiet=args.quiet)
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace, services: ReportServices) -> int:
    from loan_report.image_export import png_filename

    config = load_report_config(Path(args.config) if args.config else None)
    input_path, table = load_input(args, services)
    selected = resolve_columns(args, config, table)
    require_columns(selected)
    if not table.rows:
        raise CliError("The spreadsheet has no data rows to export.", EXIT_COMMAND_ERROR)

    title = resolve_title(args, config)
    projected = project_export(table, selected)
    out_dir = determine_output_dir(args, input_path)

    targets: list[tuple[str, Path]] = []
    if args.format in ("pdf", "both"):
        targets.append(("pdf", safe_output_path(out_dir / pdf_filename(title))))
    if args.format in ("png", "both"):
        targets.append(("png", safe_output_path(out_dir / png_filename(title))))

    written: list[Path] = []
    for kind, path in targets:
        renderer = services.render_document if kind == "pdf" else services.rasterize
        try:
            payload = renderer(title, projected)
        except Exception as exc:
            raise CliError(f"Could not render {kind.upper()}: {exc}", EXIT_RENDER_FAILED) from exc
        write_bytes(path, payload)
        written.append(path)
        emit_human(f"{kind.upper()} written: {path}", quiet=args.quiet)
        emit_verbose(args, f"{kind.upper()} size: {len(payload):,} bytes")

    summary = build_payload(
        "loan_report.export",
        projected,
        command="export",
        input_path=input_path,
        title=title,
        output_paths=written,
    )
    if args.json:
        print(json_dumps(remove_generated_at(summary)))
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    payload = {
        "title": DEFAULT_REPORT_TITLE,
        "columns": list(DEFAULT_SELECTED_HEADERS),
    }
    write_json(config_path, payload)
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


COMMANDS = {
    "columns": run_columns,
    "preview": run_preview,
    "summary": run_summary,
    "export": run_export,
}


def main(argv: list[str] | None = None, services: ReportServices | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        handler = COMMANDS.get(args.command)
        if handler is None:
            raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
        try:
            return handler(args, services or default_services())
        except CliError:
            raise
        except Exception as exc:
            eprint(str(exc))
            return classify_backend_exception(exc)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
