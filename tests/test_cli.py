"""Tests for CLI."""

from __future__ import annotations

import csv
import json
from pathlib import Path

from click.testing import CliRunner

from retireplan.cli.main import cli

GOLDEN = Path(__file__).parent / "golden" / "single_retiree.json"


class TestCLI:
    def test_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.3.0" in result.output

    def test_run_defaults(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run"])
        assert result.exit_code == 0, result.output
        assert "Projection 2025-2056 (32 years)" in result.output
        assert "Lifetime tax:" in result.output
        assert "Savings vs baseline:" in result.output

    def test_run_without_conversions(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--no-conversions"])
        assert result.exit_code == 0, result.output
        assert "Roth converted:       $0" in result.output
        assert "Savings vs baseline" not in result.output

    def test_run_with_config(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--config", str(GOLDEN)])
        assert result.exit_code == 0, result.output
        assert "Projection 2025-2032 (8 years)" in result.output

    def test_as_of_overrides_config(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--config", str(GOLDEN), "--as-of", "2026"])
        assert result.exit_code == 0, result.output
        assert "Projection 2026-2032 (7 years)" in result.output

    def test_run_output_files(self, tmp_path: Path) -> None:
        """Rows go to CSV and the summary to JSON."""
        csv_file = tmp_path / "rows.csv"
        summary_file = tmp_path / "summary.json"
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "run",
                "--config",
                str(GOLDEN),
                "--csv",
                str(csv_file),
                "--output",
                str(summary_file),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Rows written to" in result.output
        with csv_file.open(newline="") as f:
            rows = list(csv.DictReader(f))
        assert [int(r["year"]) for r in rows] == list(range(2025, 2033))
        data = json.loads(summary_file.read_text())
        assert data["n_years"] == 8
        assert data["total_roth_converted"] > 0

    def test_no_extrapolate_fails_cleanly(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--no-extrapolate"])
        assert result.exit_code == 1
        assert "no tax-law table for 2027" in result.output

    def test_bad_config(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--config", str(bad)])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output
