from __future__ import annotations

import io
import json
import os
import subprocess
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from loan_report.cli import main
from loan_report.projection import Table
from loan_report.services import ReportServices


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "loan_report.cli"]
FIXED_STAMP = "20260301T010203Z"

LOAN_CSV = (
    "Loan Account,Borrower Name,Interest Rate,Maturity Date,Term Left,Regular Payment,Loan Balance,Notes\n"
    'LN-001,Ada,9.00%,03/05/2027,24,"$1,000.00","$50,000.00",first\n'
    "LN-002,Bo,bad,12/31/2030,60,(200.00),N/A,\n"
    "LN-003,Cy,6%,01/01/2029,36,300,25000,last\n"
)


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["LOAN_REPORT_OUTPUT_STAMP"] = FIXED_STAMP
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_loans(tmpdir: str, text: str = LOAN_CSV) -> Path:
    path = Path(tmpdir) / "loans.csv"
    path.write_text(text, encoding="utf-8")
    return path


def fake_services(*, fail_render: bool = False, rows: int = 2) -> ReportServices:
    table = Table(
        headers=["Borrower Name", "Regular Payment"],
        rows=[{"Borrower Name": f"B{i}", "Regular Payment": 10} for i in range(rows)],
    )

    def render(title, projected):
        if fail_render:
            raise RuntimeError("renderer exploded")
        return f"{title}:{len(projected.rows)}".encode("utf-8")

    return ReportServices(decode=lambda path: table, render_document=render, rasterize=render)


def call_main(argv: list[str], services: ReportServices | None = None) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(argv, services=services)
    return code, out.getvalue(), err.getvalue()


class LoanReportCliTests(unittest.TestCase):
    def test_columns_marks_default_selection(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("columns", str(write_loans(tmpdir)), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "loan_report.columns")
        self.assertEqual(payload["rows"], 3)
        self.assertIn("Notes", payload["headers"])
        self.assertEqual(
            payload["default_selection"],
            ["Loan Account", "Borrower Name", "Interest Rate", "Maturity Date", "Term Left", "Regular Payment", "Loan Balance"],
        )

    def test_preview_prints_aligned_table_with_totals(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli(
                "preview",
                str(write_loans(tmpdir)),
                "--columns",
                "Borrower Name,Interest Rate,Regular Payment,Loan Balance",
            )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        lines = proc.stdout.splitlines()
        self.assertTrue(lines[0].startswith("Borrower Name"))
        self.assertIn("$1,000.00", proc.stdout)
        self.assertIn("-$200.00", proc.stdout)
        self.assertIn("N/A", proc.stdout)
        self.assertTrue(lines[-1].startswith("Totals"))
        self.assertIn("Portfolio Yield: 5.0000% (3 loans)", lines[-1])
        self.assertIn("$1,100.00", lines[-1])
        self.assertIn("$75,000.00", lines[-1])

    def test_preview_json_reports_truncation(self):
        rows = "".join(f"B{i},{i}\n" for i in range(60))
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_loans(tmpdir, "Borrower Name,Loan Balance\n" + rows)
            proc = run_cli("preview", str(path), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(len(payload["rows"]), 50)
        self.assertEqual(payload["indicator"], "Showing the first 50 rows of 60 total.")
        self.assertEqual(payload["totals"]["loan_count"], 60)
        self.assertEqual(payload["footer"], ["Totals", "$1,770.00"])

    def test_summary_json_and_output_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "summary.json"
            proc = run_cli("summary", str(write_loans(tmpdir)), "--json", "--output", str(output))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(output.exists())
            written = json.loads(output.read_text(encoding="utf-8"))
        payload = json.loads(proc.stdout)
        self.assertEqual(payload, written)
        self.assertEqual(payload["contract"]["name"], "loan_report.summary")
        self.assertEqual(payload["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")
        self.assertEqual(payload["totals"]["total_regular_payment"], 1100.0)
        self.assertEqual(payload["totals"]["total_loan_balance"], 75000.0)
        self.assertIn("Summary written:", proc.stderr)

    def test_summary_refuses_to_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "summary.json"
            output.write_text("{}", encoding="utf-8")
            proc = run_cli("summary", str(write_loans(tmpdir)), "--output", str(output))
            self.assertEqual(output.read_text(encoding="utf-8"), "{}")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Refusing to overwrite", proc.stderr)

    def test_export_writes_pdf_and_png(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            out_dir = Path(tmpdir) / "out"
            proc = run_cli(
                "export",
                str(write_loans(tmpdir)),
                "--title",
                "Q3 Loans",
                "--format",
                "both",
                "--out",
                str(out_dir),
                "--json",
            )
            self.assertEqual(proc.returncode, 0, proc.stderr)
            pdf_path = out_dir / "Q3_Loans_report.pdf"
            png_path = out_dir / "Q3_Loans.png"
            self.assertTrue(pdf_path.read_bytes().startswith(b"%PDF"))
            self.assertTrue(png_path.read_bytes().startswith(b"\x89PNG"))
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "loan_report.export")
        self.assertEqual(payload["run_summary"]["output_files"], [str(pdf_path), str(png_path)])
        self.assertIn("PDF written:", proc.stderr)

    def test_export_default_output_directory_uses_stamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_loans(tmpdir)
            proc = subprocess.run(
                [*CLI, "export", str(path), "-q"],
                cwd=tmpdir,
                capture_output=True,
                text=True,
                env={**os.environ, "LOAN_REPORT_OUTPUT_STAMP": FIXED_STAMP, "PYTHONPATH": str(ROOT)},
            )
            self.assertEqual(proc.returncode, 0, proc.stderr)
            expected = Path(tmpdir) / "loan-report-output" / f"loans-{FIXED_STAMP}" / "Account_Portfolio_(Lender)_report.pdf"
            self.assertTrue(expected.exists())
        self.assertEqual(proc.stderr.strip(), "")

    def test_unknown_column_is_a_command_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("preview", str(write_loans(tmpdir)), "--columns", "Borrower Name,Nope")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown column(s): Nope", proc.stderr)

    def test_unreadable_input_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broken.xlsx"
            path.write_bytes(b"not a workbook")
            proc = run_cli("preview", str(path))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Could not read workbook", proc.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("summary", "does-not-exist.xlsx")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_config_init_writes_file_once(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "loan-report.json"
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(config_path.read_text(encoding="utf-8"))
            again = run_cli("config", "init", "--path", str(config_path))
        self.assertEqual(payload["title"], "Account Portfolio (Lender)")
        self.assertEqual(payload["columns"][0], "Loan Account")
        self.assertEqual(again.returncode, 1)

    def test_version_prints_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), "0.1.0")


class LoanReportMainTests(unittest.TestCase):
    def test_config_supplies_title_and_columns(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "report.json"
            config.write_text(json.dumps({"title": "From Config", "columns": ["Regular Payment"]}), encoding="utf-8")
            code, out, err = call_main(
                ["export", str(config), "--config", str(config), "--out", tmpdir, "--json"],
                services=fake_services(),
            )
            self.assertEqual(code, 0, err)
            written = Path(tmpdir) / "From_Config_report.pdf"
            self.assertEqual(written.read_bytes(), b"From Config:2")
        payload = json.loads(out)
        self.assertEqual([column["header"] for column in payload["columns"]], ["Regular Payment"])
        self.assertEqual(payload["footer"], ["Totals"])

    def test_columns_flag_overrides_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "report.json"
            config.write_text(json.dumps({"columns": ["Regular Payment"]}), encoding="utf-8")
            code, out, _ = call_main(
                ["preview", str(config), "--config", str(config), "--columns", "Borrower Name,Regular Payment"],
                services=fake_services(),
            )
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("Borrower Name"))
        self.assertIn("$20.00", out.splitlines()[-1])

    def test_yaml_config_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "report.yaml"
            config.write_text("title: x\n", encoding="utf-8")
            code, _, err = call_main(["summary", str(config), "--config", str(config)], services=fake_services())
        self.assertEqual(code, 1)
        self.assertIn("YAML configs are not supported yet", err)

    def test_unknown_config_keys_are_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "report.json"
            config.write_text(json.dumps({"colour": "blue"}), encoding="utf-8")
            code, _, err = call_main(["summary", str(config), "--config", str(config)], services=fake_services())
        self.assertEqual(code, 1)
        self.assertIn("Unknown config keys: colour", err)

    def test_duplicate_columns_are_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_loans(tmpdir)
            code, _, err = call_main(
                ["preview", str(path), "--columns", "Borrower Name,Borrower Name"],
                services=fake_services(),
            )
        self.assertEqual(code, 1)
        self.assertIn("Column selected more than once: Borrower Name", err)

    def test_empty_selection_cannot_be_exported(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "report.json"
            config.write_text(json.dumps({"columns": []}), encoding="utf-8")
            code, _, err = call_main(["export", str(config), "--config", str(config), "--out", tmpdir], services=fake_services())
        self.assertEqual(code, 1)
        self.assertIn("No columns selected", err)

    def test_table_without_rows_cannot_be_exported(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_loans(tmpdir)
            code, _, err = call_main(
                ["export", str(path), "--columns", "Borrower Name", "--out", tmpdir],
                services=fake_services(rows=0),
            )
        self.assertEqual(code, 1)
        self.assertIn("no data rows", err)

    def test_render_failure_returns_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_loans(tmpdir)
            code, _, err = call_main(
                ["export", str(path), "--columns", "Borrower Name", "--out", str(Path(tmpdir) / "out")],
                services=fake_services(fail_render=True),
            )
            self.assertFalse((Path(tmpdir) / "out").exists())
        self.assertEqual(code, 3)
        self.assertIn("Could not render PDF: renderer exploded", err)

    def test_bad_arguments_return_exit_1(self):
        code, _, err = call_main(["export"])
        self.assertEqual(code, 1)
        self.assertIn("required", err)


if __name__ == "__main__":
    unittest.main()
