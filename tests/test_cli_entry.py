import json

import pytest

import traffic_survey.main as cli
from conftest import TRAFFIC_CSV


@pytest.fixture
def use_mock_controller(monkeypatch, mock_controller):
    monkeypatch.setattr("traffic_survey.app_container.build_dashboard_controller", lambda: mock_controller)
    return mock_controller


def test_summarize_prints_series_json(use_mock_controller, capsys):
    code = cli.run(["summarize", "parking", "--date", "2024-01-15", "--dimension", "usage"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["series"]["granularity"] == "hour"
    assert [bucket["time"] for bucket in payload["series"]["buckets"]] == ["14:00", "15:00"]
    assert list(payload["breakdowns"]) == ["usage"]
    assert "records" not in payload


def test_summarize_uses_csv_file(use_mock_controller, tmp_path, capsys):
    csv_path = tmp_path / "survey.csv"
    csv_path.write_text(TRAFFIC_CSV, encoding="utf-8")

    code = cli.run([
        "summarize", "traffic", "--csv", str(csv_path),
        "--start", "2024-02-01", "--end", "2024-02-01", "--records",
        "--output-dir", str(tmp_path / "out"),
    ])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["using_csv"] is True
    assert len(payload["records"]) == 3
    assert list((tmp_path / "out").glob("traffic_2024-02-01_2024-02-01_*.csv"))


def test_summarize_reports_parse_failure(use_mock_controller, tmp_path, capsys):
    bad = tmp_path / "survey.txt"
    bad.write_text(TRAFFIC_CSV, encoding="utf-8")

    code = cli.run(["summarize", "traffic", "--csv", str(bad), "--date", "2024-02-01"])

    assert code == 1
    assert "CSVファイルを選択してください" in capsys.readouterr().err


def test_summarize_requires_a_date(use_mock_controller):
    with pytest.raises(SystemExit) as excinfo:
        cli.run(["summarize", "traffic"])

    assert excinfo.value.code == 2


def test_summarize_rejects_unknown_dimension(use_mock_controller):
    with pytest.raises(SystemExit):
        cli.run(["summarize", "weather", "--date", "2024-01-15", "--dimension", "usage"])


def test_serve_runs_uvicorn(monkeypatch):
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr("uvicorn.run", fake_run)

    assert cli.run(["serve", "--port", "9000"]) == 0
    assert calls["app"] == "traffic_survey.api.app:app"
    assert calls["port"] == 9000
    assert calls["reload"] is False
