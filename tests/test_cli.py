from __future__ import annotations

import json
import logging
import sys

import pandas as pd
import pytest
from click.testing import CliRunner

import coreops.cli as cli_mod

RODS = [{"id": "P"}, {"id": "R3"}, {"id": "R4"}, {"id": "R5"}]


@pytest.fixture(autouse=True)
def restore_coreops_logger():
    logger = logging.getLogger("coreops")
    old_handlers = list(logger.handlers)
    old_level = logger.level
    yield
    logger.handlers[:] = old_handlers
    logger.setLevel(old_level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "run.json"
    path.write_text(json.dumps({
        "name": "cli-xenon",
        "rods": RODS,
        "option": {"rod_positions": {r["id"]: 381.0 for r in RODS}},
        "operation": {"kind": "xenon", "end_time": 10800.0, "time_step": 3600.0},
        "margin": {"failed_rod": "P", "stuck_rods": ["R5"]},
    }))
    return path


def test_kinds_lists_every_operation() -> None:
    result = CliRunner().invoke(cli_mod.cli, ["kinds"])
    assert result.exit_code == 0
    assert result.output.split() == ["xenon", "flexible", "coastdown", "ecp", "startup", "general"]


def test_run_prints_table_and_writes_csv(config_file, tmp_path) -> None:
    csv_path = tmp_path / "history.csv"
    result = CliRunner().invoke(cli_mod.cli, ["run", str(config_file), "--output", str(csv_path)])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith("time_s | error")
    assert len(lines) == 1 + 3 + 1
    assert "history written" in lines[-1]
    frame = pd.read_csv(csv_path)
    assert frame["time_s"].tolist() == [3600.0, 7200.0, 10800.0]


def test_run_writes_csv_through_history_writer(config_file, tmp_path, monkeypatch) -> None:
    import coreops.io.history as history

    calls = []
    real = history.write_history_csv

    def recording(results, path):
        calls.append(len(results))
        return real(results, path)

    monkeypatch.setattr(history, "write_history_csv", recording)
    csv_path = tmp_path / "history.csv"
    result = CliRunner().invoke(cli_mod.cli, ["run", str(config_file), "--output", str(csv_path)])
    assert result.exit_code == 0, result.output
    assert calls == [3]
    assert csv_path.exists()


def test_run_with_plot(config_file, tmp_path) -> None:
    png = tmp_path / "history.png"
    result = CliRunner().invoke(cli_mod.cli, ["run", str(config_file), "--plot", str(png)])
    assert result.exit_code == 0, result.output
    assert png.exists()


def test_margin_prints_breakdown(config_file) -> None:
    result = CliRunner().invoke(cli_mod.cli, ["margin", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "stuck_rod: P" in result.output
    assert "bite_worth: 2400" in result.output
    assert "adequate: no" in result.output


def test_margin_rejects_negative_dt(config_file) -> None:
    result = CliRunner().invoke(cli_mod.cli, ["margin", str(config_file), "--dt=-5"])
    assert result.exit_code != 0
    assert "--dt" in result.output


def test_invalid_config_is_reported(tmp_path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"rods": [{"id": "P"}], "operation": {"kind": "warp"}}))
    result = CliRunner().invoke(cli_mod.cli, ["run", str(bad)])
    assert result.exit_code == 1
    assert "unknown operation kind" in result.output


def test_main_returns_exit_codes(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(sys, "argv", ["coreops", "kinds"])
    assert cli_mod.main() == 0

    bad = tmp_path / "bad.json"
    bad.write_text("{")
    monkeypatch.setattr(sys, "argv", ["coreops", "run", str(bad)])
    assert cli_mod.main() == 1

    monkeypatch.setattr(sys, "argv", ["coreops", "run", str(tmp_path / "absent.json")])
    assert cli_mod.main() == 2
