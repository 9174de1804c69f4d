"""Shared versioned contracts for loan-report JSON outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loan_report import __version__ as TOOL_VERSION
from loan_report.projection import ProjectedTable

CONTRACT_VERSIONS = {
    "loan_report.columns": "1.0.0",
    "loan_report.summary": "1.0.0",
    "loan_report.export": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    status: str = "ok",
    output_paths: list[Path] | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "loan-report",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_files": [str(path) for path in output_paths or []],
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def projection_metrics(projected: ProjectedTable) -> dict[str, Any]:
    totals = projected.aggregates
    return {
        "loan_count": totals.loan_count,
        "total_regular_payment": round(totals.total_regular_payment, 2),
        "total_loan_balance": round(totals.total_loan_balance, 2),
        "portfolio_yield": round(totals.portfolio_yield, 4),
        "columns": len(projected.columns),
        "rows_rendered": len(projected.rows),
    }


def build_payload(
    name: str,
    projected: ProjectedTable,
    *,
    command: str,
    input_path: Path,
    title: str | None = None,
    output_paths: list[Path] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    contract = build_contract(name)
    metrics = projection_metrics(projected)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "title": title,
        "columns": [
            {"header": column.header, "label": column.label, "align": column.align, "currency": column.currency}
            for column in projected.columns
        ],
        "footer": [cell.text for cell in projected.footer],
        "totals": projected.aggregates.as_dict(),
        "run_summary": build_run_summary(
            command=command,
            input_path=input_path,
            output_paths=output_paths,
            metrics=metrics,
            warnings=warnings,
        ),
    }
