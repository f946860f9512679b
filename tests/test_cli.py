import csv
import json

import pytest
from click.testing import CliRunner

from networth_calc.main import cli, parse_amount


@pytest.fixture
def runner():
    return CliRunner()


@pytest.mark.parametrize("raw, expected", [("500k", "500000"), ("1.5m", "1500000"), ("12,500", "12500")])
def test_parse_amount_suffixes(raw, expected):
    assert parse_amount(raw) == int(expected)


def test_payment_command(runner):
    result = runner.invoke(cli, ["payment", "-p", "300k", "-r", "6", "-t", "30"])
    assert result.exit_code == 0
    assert result.output.strip() == "1798.65"


def test_schedule_prints_summary(runner):
    result = runner.invoke(cli, ["schedule", "-p", "10000", "-r", "5", "-t", "1", "-s", "2024-01-01"])
    assert result.exit_code == 0
    assert "Monthly payment    : 856.07" in result.output
    assert "2024-12-01" in result.output


def test_schedule_with_extra_payment_to_json(runner, tmp_path):
    out = tmp_path / "schedule.json"
    result = runner.invoke(
        cli,
        [
            "schedule", "-p", "300000", "-r", "6", "-t", "30", "-s", "2024-01-01",
            "--extra", "200:monthly:2024-01-01",
            "--extra", "5k:annual:2024-06-01",
            "--output", str(out),
        ],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["summary"]["monthly_payment"] == 1798.65
    assert data["summary"]["months_saved"] > 0
    assert data["summary"]["interest_saved"] > 0
    assert data["schedule"][0]["extra_payment"] == 200.0
    assert len(data["schedule"]) == 360 - data["summary"]["months_saved"]


def test_schedule_to_csv(runner, tmp_path):
    out = tmp_path / "schedule.csv"
    result = runner.invoke(
        cli, ["schedule", "-p", "12000", "-r", "0", "-t", "1", "-s", "2024-01-01", "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    with out.open(newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "Payment_Number"
    assert len(rows) == 13
    assert float(rows[-1][-1]) == 0


@pytest.mark.parametrize(
    "extra",
    ["200:monthly", "200:weekly:2024-01-01", "-5:monthly:2024-01-01", "abc:monthly:2024-01-01", "200:monthly:soon"],
)
def test_schedule_rejects_bad_extra(runner, extra):
    result = runner.invoke(
        cli, ["schedule", "-p", "300000", "-r", "6", "-t", "30", "-s", "2024-01-01", "--extra", extra]
    )
    assert result.exit_code != 0


def test_schedule_rejects_bad_terms(runner):
    result = runner.invoke(cli, ["schedule", "-p", "300000", "-r", "6", "-t", "0", "-s", "2024-01-01"])
    assert result.exit_code != 0


def test_split_extra_payment(runner):
    result = runner.invoke(cli, ["split", "-b", "50000", "-r", "6", "-a", "25000", "--type", "extra"])
    assert result.exit_code == 0
    assert "Principal paid     : 25000.00" in result.output
    assert "Interest paid      : 0.00" in result.output


def test_split_warns_when_payment_retires_balance(runner):
    result = runner.invoke(cli, ["split", "-b", "1000", "-r", "6", "-a", "2000"])
    assert result.exit_code == 0
    assert "Principal paid     : 1000.00" in result.output
    assert "will pay off the remaining balance" in result.output


def test_home_value_with_equity(runner):
    result = runner.invoke(
        cli,
        ["home-value", "--price", "400k", "--purchased", "2020-01-01", "--as-of", "2020-01-01", "--balance", "450k"],
    )
    assert result.exit_code == 0
    assert "Home value         : 400000.00" in result.output
    assert "Equity             : -50000.00" in result.output


def test_forecast_short_window(runner):
    result = runner.invoke(cli, ["forecast", "--net-worth", "100000", "--date", "2024-01-01", "--window", "1M"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines[1] == "2024-01-01\t100000.00"
    assert [line.split("\t")[0] for line in lines[2:]] == ["2024-01-08", "2024-01-15"]


def test_forecast_without_growth(runner):
    result = runner.invoke(
        cli, ["forecast", "--net-worth", "1000", "--date", "2024-01-01", "--window", "3m", "--growth", "0"]
    )
    assert result.exit_code == 0
    assert all(line.endswith("1000.00") for line in result.output.strip().splitlines()[1:])
