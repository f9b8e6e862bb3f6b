import pytest
from typer.testing import CliRunner

from export_console import cli, config
from export_console.errors import ExportServiceUnavailable, JobNotFoundError
from export_console.schema import ExportJobSummary

from conftest import FakeExportClient, make_job

runner = CliRunner()


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeExportClient([make_job("completed")])
    monkeypatch.setattr(cli, "client_from_env", lambda: client)
    monkeypatch.setattr(config, "POLL_INTERVAL_SECONDS", 0)
    return client


def test_list(fake_client):
    async def list_exports():
        return [ExportJobSummary(job_id="tr_1", job_name="bot", base_model_id="google/gemma-3-1b-it")]

    fake_client.list_exports = list_exports

    result = runner.invoke(cli.app, ["list"])

    assert result.exit_code == 0
    assert "tr_1\tbot\tgoogle/gemma-3-1b-it" in result.output


def test_status_shows_artifacts_and_banner(fake_client):
    fake_client.jobs = [
        make_job("completed", message="Adapter exported successfully.", artifacts={"file": {"adapter": "gs://files/tr_1/adapter.zip"}})
    ]

    result = runner.invoke(cli.app, ["status", "tr_1"])

    assert result.exit_code == 0
    assert "gs://files/tr_1/adapter.zip" in result.output
    assert "[completed]" in result.output


def test_status_unknown_job(fake_client):
    fake_client.jobs = [JobNotFoundError("tr_1")]

    result = runner.invoke(cli.app, ["status", "tr_1"])

    assert result.exit_code == 1
    assert "Job tr_1 not found" in result.output


def test_export_follows_until_completed(fake_client):
    fake_client.jobs = [
        make_job("completed"),
        make_job("running", export_id="exp_2"),
        make_job("completed", export_id="exp_2", message="Merged model exported successfully."),
    ]

    result = runner.invoke(cli.app, ["export", "tr_1", "--type", "merged", "--dest", "gcs"])

    assert result.exit_code == 0
    assert "MERGED export started" in result.output
    assert "MERGED export completed" in result.output
    assert len(fake_client.submitted) == 1


def test_export_reports_field_errors(fake_client):
    result = runner.invoke(
        cli.app, ["export", "tr_1", "--type", "merged", "--dest", "hf_hub", "--hf-token", "abc"]
    )

    assert result.exit_code == 1
    assert "hf_repo_id" in result.output
    assert fake_client.submitted == []


def test_export_refused_while_running(fake_client):
    fake_client.jobs = [make_job("running")]

    result = runner.invoke(cli.app, ["export", "tr_1", "--type", "adapter", "--no-watch"])

    assert result.exit_code == 1
    assert "already running" in result.output
    assert fake_client.submitted == []


def test_export_refused_when_status_unavailable(fake_client):
    fake_client.jobs = [ExportServiceUnavailable("Export service returned 503", status_code=503)]

    result = runner.invoke(cli.app, ["export", "tr_1", "--type", "adapter"])

    assert result.exit_code == 1
    assert "Failed to fetch export job: Export service returned 503" in result.output
    assert "Export status of job tr_1 is not loaded" in result.output
    assert fake_client.submitted == []


def test_missing_service_url(monkeypatch):
    monkeypatch.delenv("EXPORT_SERVICE_URL", raising=False)

    result = runner.invoke(cli.app, ["status", "tr_1"])

    assert result.exit_code == 2
