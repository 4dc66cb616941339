import json

import pytest

from skills.hiring_funnel.config import DEFAULT_ORG_ID, load_settings
from skills.hiring_funnel.jobs import load_jobs, select_jobs
from skills.hiring_funnel.types import Job


def test_load_jobs_json_dedupes_and_skips_blank_ids(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text(
        json.dumps(
            {
                "jobs": [
                    {"JobId": "a", "JobName": "Alpha"},
                    {"JobId": "", "JobName": "Nameless"},
                    {"id": "b", "name": "Beta"},
                    {"JobId": "a", "JobName": "Duplicate"},
                ]
            }
        ),
        encoding="utf-8",
    )
    assert load_jobs(str(path)) == [Job(id="a", name="Alpha"), Job(id="b", name="Beta")]


def test_load_jobs_csv(tmp_path):
    path = tmp_path / "jobs.csv"
    path.write_text("JobId,JobName\nx,Ex\ny,Why\n", encoding="utf-8")
    assert [job.id for job in load_jobs(str(path))] == ["x", "y"]


def test_load_jobs_errors(tmp_path):
    with pytest.raises(ValueError):
        load_jobs(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_jobs(str(bad))


def test_select_jobs_keeps_catalogue_order():
    catalogue = [Job(id="a"), Job(id="b"), Job(id="c")]
    assert select_jobs(catalogue, None) == catalogue
    assert select_jobs(catalogue, ["c", "a"]) == [Job(id="a"), Job(id="c")]
    with pytest.raises(ValueError):
        select_jobs(catalogue, ["zzz"])


def test_load_settings_defaults(monkeypatch):
    for name in (
        "ATS_API_BASE_URL",
        "API_BASE_URL",
        "ATS_ORG_ID",
        "ATS_BATCH_SIZE",
        "ATS_BATCH_PAUSE_SECONDS",
        "ATS_CACHE_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.batch_size == 3
    assert settings.batch_pause_seconds == 5.0
    assert settings.cache_ttl_seconds == 300
    assert settings.org_id == DEFAULT_ORG_ID


def test_load_settings_reads_env_aliases(monkeypatch):
    monkeypatch.delenv("ATS_API_BASE_URL", raising=False)
    monkeypatch.setenv("API_BASE_URL", "https://ats.example.test/api")
    monkeypatch.setenv("ATS_BATCH_SIZE", "5")
    settings = load_settings()
    assert settings.api_base_url == "https://ats.example.test/api"
    assert settings.batch_size == 5


def test_load_settings_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("ATS_BATCH_SIZE", "three")
    with pytest.raises(ValueError, match="ATS_BATCH_SIZE"):
        load_settings()
    monkeypatch.setenv("ATS_BATCH_SIZE", "0")
    with pytest.raises(ValueError, match="ATS_BATCH_SIZE"):
        load_settings()
