"""Tests for the business-case-ai command line."""

import json

import pytest
from click.testing import CliRunner

from business_case_ai.cli.main import cli
from business_case_ai.config import set_settings
from business_case_ai.core.integrity import ApiLogStore
from business_case_ai.core.research_cache import ResearchCache
from conftest import TEST_API_KEY


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "business-case-ai.toml"
    path.write_text(
        f"""
[storage]
data_dir = "{(tmp_path / 'data').as_posix()}"
cache_dir = "{(tmp_path / 'cache').as_posix()}"

[logging]
level = "CRITICAL"
"""
    )
    yield path
    set_settings(None)


@pytest.fixture
def invoke(cli_runner, config_path):
    def run(*args, input=None):
        return cli_runner.invoke(
            cli,
            ["--config", str(config_path), *args],
            input=input,
            env={"OPENAI_API_KEY": TEST_API_KEY},
        )

    return run


@pytest.fixture
def inputs_file(tmp_path, case_inputs):
    path = tmp_path / "inputs.json"
    path.write_text(json.dumps(case_inputs))
    return path


def envelope(result):
    return json.loads(result.stdout)


class TestAnalyze:
    def test_no_ai_run(self, invoke, inputs_file):
        """analyze --no-ai prints a successful run with fallback warnings."""
        result = invoke("analyze", "--no-ai", str(inputs_file))

        assert result.exit_code == 0, result.output
        data = envelope(result)
        assert data["success"] is True
        assert data["meta"]["version"] == "response-v2"
        assert data["data"]["state"] == "run_succeeded"
        assert data["data"]["data"]["company_name"] == "Acme Corp"
        assert "debug" not in data["data"]
        assert "enrichment_disabled: AI analysis disabled." in data["meta"]["warnings"]

    def test_debug_flag_includes_steps(self, invoke, inputs_file):
        """--debug adds the step trail to the output."""
        result = invoke("analyze", "--no-ai", "--debug", str(inputs_file))

        assert result.exit_code == 0, result.output
        assert len(envelope(result)["data"]["debug"]["steps"]) == 6

    def test_inputs_from_stdin(self, invoke, case_inputs):
        """Inputs can be read from stdin."""
        result = invoke("analyze", "--no-ai", "-", input=json.dumps(case_inputs))

        assert result.exit_code == 0, result.output

    def test_invalid_json(self, invoke, tmp_path):
        """Malformed input JSON is a validation error."""
        path = tmp_path / "bad.json"
        path.write_text("{company")

        result = invoke("analyze", str(path))

        assert result.exit_code == 1
        data = envelope(result)
        assert data["success"] is False
        assert data["data"]["error_code"] == "VALIDATION_ERROR"

    def test_invalid_inputs_fail_run(self, invoke, tmp_path):
        """Invalid inputs report RUN_FAILED with the field name."""
        path = tmp_path / "inputs.json"
        path.write_text(json.dumps({"company_name": ""}))

        result = invoke("analyze", "--no-ai", str(path))

        assert result.exit_code == 1
        data = envelope(result)
        assert data["data"]["error_code"] == "RUN_FAILED"
        assert "company_name" in data["error"]

    def test_background_job(self, invoke, inputs_file):
        """A background analysis can be polled to completion."""
        result = invoke("analyze", "--no-ai", "--background", str(inputs_file))

        assert result.exit_code == 0, result.output
        job_id = envelope(result)["data"]["job_id"]

        status = invoke("job", "status", job_id)
        assert status.exit_code == 0, status.output
        data = envelope(status)["data"]
        assert data["job_id"] == job_id
        assert data["status"] == "completed"
        assert data["percent"] == 100


class TestJobCommands:
    def test_status_missing(self, invoke):
        """Unknown job ids report NOT_FOUND."""
        result = invoke("job", "status", "01JUNKNOWNJOB")

        assert result.exit_code == 1
        data = envelope(result)
        assert data["data"]["error_code"] == "NOT_FOUND"
        assert "01JUNKNOWNJOB" in data["error"]

    def test_cleanup_empty(self, invoke):
        """cleanup with no jobs removes nothing."""
        result = invoke("job", "cleanup", "--max-age", "60")

        assert result.exit_code == 0
        assert envelope(result)["data"] == {"removed": 0}


class TestLogCommands:
    def test_report(self, invoke, tmp_path):
        """logs report summarizes stored records."""
        ApiLogStore(tmp_path / "data" / "api_logs.jsonl").save({"input": "hi"}, {"output_text": "hello"})

        result = invoke("logs", "report")

        assert result.exit_code == 0, result.output
        report = envelope(result)["data"]
        assert report["total"] == 1
        assert report["corrupted"] == 0

    def test_report_unknown_id(self, invoke):
        """An unknown log id reports NOT_FOUND."""
        result = invoke("logs", "report", "--log-id", "missing")

        assert result.exit_code == 1
        assert envelope(result)["data"]["error_code"] == "NOT_FOUND"

    def test_purge(self, invoke):
        """purge with no records removes nothing."""
        result = invoke("logs", "purge", "--days", "7")

        assert result.exit_code == 0
        assert envelope(result)["data"] == {"removed": 0}


class TestCacheCommands:
    def test_invalidate(self, invoke, tmp_path):
        """cache invalidate removes the entry."""
        ResearchCache(tmp_path / "cache").set("Acme Corp", "Manufacturing", "enrichment", {"a": 1})

        result = invoke("cache", "invalidate", "Acme Corp", "Manufacturing", "enrichment")

        assert result.exit_code == 0
        assert envelope(result)["data"] == {"removed": True}
        assert ResearchCache(tmp_path / "cache").get("Acme Corp", "Manufacturing", "enrichment") is None

    def test_stats(self, invoke):
        """cache stats reports an empty cache."""
        result = invoke("cache", "stats")

        assert result.exit_code == 0
        assert envelope(result)["data"]["total_entries"] == 0


def test_version(cli_runner):
    """--version prints the package version."""
    result = cli_runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
