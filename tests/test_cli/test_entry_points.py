"""
Tests for the command-line entry points, run against a CSV price file.
"""
import logging
import sys

import pytest

from cli import backtest as backtest_cli
from cli import grade as grade_cli
from cli import run_daily as run_daily_cli
from orb.automation.state import OrbStateStore
from orb.grading.store import ScorecardRow, ScorecardStore


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces the root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def csv_path(tmp_path, daily_bars):
    path = tmp_path / "TSLA.csv"
    daily_bars.to_csv(path)
    return path


@pytest.fixture
def config_path(tmp_path, csv_path):
    path = tmp_path / "orb.yaml"
    path.write_text(
        "data:\n"
        f"  csv_path: {csv_path}\n"
        "  lookback_days: 1000\n"
        "state:\n"
        f"  dir: {tmp_path / 'state'}\n"
    )
    return path


def run(monkeypatch, module, *argv):
    monkeypatch.setattr(sys, "argv", [module.__name__, *argv])
    return module.main()


class TestParseFields:
    def test_yaml_scalars(self):
        values = grade_cli.parse_fields(["s1_level=420.5", "hiro_stale=true", "primary_scenario=Bull: break 445"])
        assert values == {"s1_level": 420.5, "hiro_stale": True, "primary_scenario": "Bull: break 445"}

    def test_empty_value_is_none(self):
        assert grade_cli.parse_fields(["report_link="]) == {"report_link": None}

    def test_missing_equals(self):
        with pytest.raises(ValueError):
            grade_cli.parse_fields(["s1_level"])


class TestRunDaily:
    def test_run_then_skip(self, monkeypatch, config_path, tmp_path, daily_bars):
        as_of = daily_bars.index[-1].strftime('%Y-%m-%d')

        assert run(monkeypatch, run_daily_cli, "--config", str(config_path), "--as-of", as_of) == 0
        store = OrbStateStore(tmp_path / "state")
        assert len(store.get_daily_snapshots(as_of)) == 15

        assert run(monkeypatch, run_daily_cli, "--config", str(config_path), "--as-of", as_of) == 0
        assert len(OrbStateStore(tmp_path / "state").get_daily_snapshots()) == 15

    def test_dry_run_writes_nothing(self, monkeypatch, config_path, tmp_path, daily_bars):
        as_of = daily_bars.index[-1].strftime('%Y-%m-%d')
        assert run(monkeypatch, run_daily_cli, "--config", str(config_path), "--as-of", as_of, "--dry-run") == 0
        assert not (tmp_path / "state").exists()

    def test_insufficient_history_fails(self, monkeypatch, config_path, daily_bars):
        as_of = daily_bars.index[50].strftime('%Y-%m-%d')
        assert run(monkeypatch, run_daily_cli, "--config", str(config_path), "--as-of", as_of) == 1

    def test_missing_config(self, monkeypatch, tmp_path):
        assert run(monkeypatch, run_daily_cli, "--config", str(tmp_path / "nope.yaml")) == 1

    def test_unexpected_error_fails(self, monkeypatch, config_path, daily_bars):
        def disk_full(self, record):
            raise OSError("disk full")
        monkeypatch.setattr(OrbStateStore, "upsert_daily_indicators", disk_full)

        as_of = daily_bars.index[-1].strftime('%Y-%m-%d')
        assert run(monkeypatch, run_daily_cli, "--config", str(config_path), "--as-of", as_of) == 1


class TestGradeCli:
    def test_enrich_and_list(self, monkeypatch, config_path, tmp_path, capsys):
        ScorecardStore(tmp_path / "state").insert(
            ScorecardRow(date="2022-03-01", mode="YELLOW", orb_zone="NEUTRAL", close_price=200.0)
        )

        assert run(monkeypatch, grade_cli, "--config", str(config_path), "list-unenriched") == 0
        assert "2022-03-01: missing levels, options, flow" in capsys.readouterr().out

        assert run(monkeypatch, grade_cli, "--config", str(config_path),
                   "enrich", "2022-03-01", "--field", "s1_level=195") == 0
        assert ScorecardStore(tmp_path / "state").get("2022-03-01").s1_level == 195

    def test_grade_date(self, monkeypatch, config_path, tmp_path, capsys, daily_bars):
        date = daily_bars.index[20].strftime('%Y-%m-%d')
        ScorecardStore(tmp_path / "state").insert(
            ScorecardRow(date=date, mode="YELLOW", orb_zone="NEUTRAL",
                         close_price=float(daily_bars['Close'].iloc[20]))
        )

        assert run(monkeypatch, grade_cli, "--config", str(config_path), "grade", date) == 0
        assert "/100" in capsys.readouterr().out
        assert ScorecardStore(tmp_path / "state").get(date).is_graded

    def test_grade_bad_date(self, monkeypatch, config_path):
        assert run(monkeypatch, grade_cli, "--config", str(config_path), "grade", "02/11/2026") == 1

    def test_enrich_rejects_grade_field(self, monkeypatch, config_path, tmp_path):
        ScorecardStore(tmp_path / "state").insert(
            ScorecardRow(date="2022-03-01", mode="YELLOW", orb_zone="NEUTRAL", close_price=200.0)
        )
        assert run(monkeypatch, grade_cli, "--config", str(config_path),
                   "enrich", "2022-03-01", "--field", "total_grade=100") == 1


class TestBacktestCli:
    def test_writes_results(self, monkeypatch, csv_path, tmp_path, capsys):
        output = tmp_path / "results"
        code = run(monkeypatch, backtest_cli, "--csv", str(csv_path), "--start", "2022-01-01",
                   "--start-index", "395", "--horizons", "1", "--output", str(output))

        assert code == 0
        assert "Forward returns by zone" in capsys.readouterr().out
        for name in ("instances.csv", "setup_summary.csv", "score_history.csv", "zone_summary.csv"):
            assert (output / name).exists()

    def test_bad_date(self, monkeypatch, csv_path):
        assert run(monkeypatch, backtest_cli, "--csv", str(csv_path), "--start", "01/02/2022") == 1
