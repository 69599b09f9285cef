import json

from typer.testing import CliRunner

from url_risk import cli
from url_risk.errors import AnalysisFailedError
from url_risk.models.results import AnalysisResult, ProviderSuccess, ProviderUnavailable

runner = CliRunner()


def _fake_result():
    return AnalysisResult(
        narrative="Nothing stands out.",
        score=10,
        raw_results={
            "sslLabs": ProviderSuccess(payload={"endpoints": [{"grade": "A"}]}),
            "whois": ProviderUnavailable(reason="not configured"),
        },
    )


def test_normalize_command():
    result = runner.invoke(cli.app, ["normalize", "--url", "HTTP://Example.com/a/"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "https://example.com/a"


def test_normalize_command_rejects_malformed_input():
    result = runner.invoke(cli.app, ["normalize", "--url", "ftp://example.com"])
    assert result.exit_code == 2


def test_heuristics_command():
    result = runner.invoke(cli.app, ["heuristics", "--url", "http://192.168.1.1/login"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["is_suspicious"] is True
    assert len(payload["reasons"]) == 2


def test_analyze_prints_wire_json(monkeypatch):
    seen = {}

    def fake_run(config, url):
        seen["config"] = config
        seen["url"] = url
        return _fake_result()

    monkeypatch.setattr(cli, "run_analysis_sync", fake_run)
    result = runner.invoke(
        cli.app,
        ["analyze", "--url", "example.com", "--cache", "memory", "--virustotal-api-key", "vt-key", "--no-ssl-labs"],
        env={"GEMINI_API_KEY": "g-key"},
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "ai_summary": "Nothing stands out.",
        "risk_score": 10,
        "technical_details": {
            "sslLabs": {"endpoints": [{"grade": "A"}]},
            "whois": {"unavailable": True, "reason": "not configured"},
        },
    }
    assert seen["url"] == "example.com"
    assert seen["config"].virustotal_api_key == "vt-key"
    assert seen["config"].gemini_api_key == "g-key"
    assert seen["config"].enable_ssl_labs is False
    assert seen["config"].cache.value == "memory"


def test_analyze_markdown_with_heuristics(monkeypatch):
    monkeypatch.setattr(cli, "run_analysis_sync", lambda config, url: _fake_result())
    result = runner.invoke(
        cli.app, ["analyze", "--url", "https://a.b.c.d.example.com/", "--format", "markdown", "--with-heuristics"]
    )

    assert result.exit_code == 0
    assert "# URL Risk Summary" in result.stdout
    assert "URL: https://a.b.c.d.example.com/" in result.stdout
    assert "## Lexical Heuristics" in result.stdout


def test_analyze_malformed_exit_code():
    result = runner.invoke(cli.app, ["analyze", "--url", "not a url", "--cache", "none"])
    assert result.exit_code == 2


def test_analyze_failure_exit_code(monkeypatch):
    def failing_run(config, url):
        raise AnalysisFailedError("boom")

    monkeypatch.setattr(cli, "run_analysis_sync", failing_run)
    result = runner.invoke(cli.app, ["analyze", "--url", "example.com", "--cache", "none"])
    assert result.exit_code == 1
