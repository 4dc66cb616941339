import json
import sys

import pytest

from skills.hiring_funnel import cli


def test_sample_source_prints_summary(monkeypatch, tmp_path, capsys):
    jobs_path = tmp_path / "jobs.json"
    jobs_path.write_text(json.dumps([{"JobId": "a", "JobName": "A"}]), encoding="utf-8")
    monkeypatch.setenv("ATS_BATCH_PAUSE_SECONDS", "0")
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "hiring-funnel",
            "--source",
            "sample",
            "--jobs",
            str(jobs_path),
            "--start-month",
            "2024-01",
            "--end-month",
            "2024-02",
            "--out",
            str(tmp_path / "out"),
            "--combine",
        ],
    )

    cli.main()

    out = capsys.readouterr().out
    assert "Run ID:" in out
    assert out.index("2024-02 Feb") < out.index("2024-01 Jan")
    assert "Combined" in out
    assert (tmp_path / "out" / "monthly_metrics.json").exists()


def test_missing_token_is_reported(monkeypatch, tmp_path, capsys):
    jobs_path = tmp_path / "jobs.json"
    jobs_path.write_text(json.dumps([{"JobId": "a"}]), encoding="utf-8")
    monkeypatch.delenv("ATS_API_TOKEN", raising=False)
    monkeypatch.setattr(sys, "argv", ["hiring-funnel", "--jobs", str(jobs_path), "--dry-run"])

    cli.main()

    out = capsys.readouterr().out
    assert "no ATS token provided" in out
    assert "dry_run=true" in out


def test_half_open_month_range_exits(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["hiring-funnel", "--start-month", "2024-01"])
    with pytest.raises(SystemExit):
        cli.main()
