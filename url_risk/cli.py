from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

import typer

from .errors import AnalysisFailedError, MalformedUrlError
from .heuristics import evaluate_heuristics
from .models.config import AnalyzerConfig, CacheMode
from .pipeline.runner import run_analysis_sync
from .reporting.markdown import build_summary
from .utils.normalize import normalize_url

app = typer.Typer(add_completion=False)

EXIT_MALFORMED = 2


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": datetime.now(timezone.utc).isoformat(),
        }
        return json.dumps(payload)


def setup_logging(verbose: bool = False) -> None:
    # stdout carries the command's result, so log records go to stderr.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, handlers=[handler], force=True)


@app.command()
def analyze(
    url: str = typer.Option(..., "--url"),
    output_format: str = typer.Option("json", "--format", help="json (wire format) or markdown."),
    with_heuristics: bool = typer.Option(False, "--with-heuristics", help="Attach lexical heuristics to the output."),
    virustotal_api_key: str | None = typer.Option(None, "--virustotal-api-key", envvar="VIRUSTOTAL_API_KEY"),
    google_safe_browsing_api_key: str | None = typer.Option(
        None, "--google-safe-browsing-api-key", envvar="GOOGLE_SAFE_BROWSING_API_KEY"
    ),
    whoisxml_api_key: str | None = typer.Option(None, "--whoisxml-api-key", envvar="WHOISXML_API_KEY"),
    urlscan_api_key: str | None = typer.Option(None, "--urlscan-api-key", envvar="URLSCAN_API_KEY"),
    gemini_api_key: str | None = typer.Option(None, "--gemini-api-key", envvar="GEMINI_API_KEY"),
    gemini_model: str | None = typer.Option(None, "--gemini-model", envvar="GEMINI_MODEL"),
    ssl_labs: bool = typer.Option(True, "--ssl-labs/--no-ssl-labs"),
    cache: CacheMode = typer.Option(CacheMode.sqlite, "--cache"),
    cache_path: str = typer.Option("./.url_risk_cache", "--cache-path"),
    timeout_seconds: float = typer.Option(20.0, "--timeout-seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyze a URL against every configured provider."""
    setup_logging(verbose)
    if output_format not in ("json", "markdown"):
        typer.echo(f"unknown format: {output_format}", err=True)
        raise typer.Exit(1)

    config = AnalyzerConfig.from_env(
        virustotal_api_key=virustotal_api_key,
        google_safe_browsing_api_key=google_safe_browsing_api_key,
        whoisxml_api_key=whoisxml_api_key,
        urlscan_api_key=urlscan_api_key,
        gemini_api_key=gemini_api_key,
        gemini_model=gemini_model,
        enable_ssl_labs=ssl_labs,
        cache=cache,
        cache_path=cache_path,
        timeout_seconds=timeout_seconds,
    )
    logging.getLogger(__name__).debug("config", extra={"config": config.redacted()})

    try:
        result = run_analysis_sync(config, url)
    except MalformedUrlError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(EXIT_MALFORMED)
    except AnalysisFailedError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1)

    wire = result.to_wire()
    if with_heuristics:
        wire["heuristics"] = evaluate_heuristics(url).model_dump(exclude={"url"})

    if output_format == "markdown":
        typer.echo(build_summary({**wire, "url": normalize_url(url)}))
    else:
        typer.echo(json.dumps(wire, indent=2, default=str))


@app.command()
def normalize(url: str = typer.Option(..., "--url")) -> None:
    """Print the canonical form of a URL."""
    try:
        typer.echo(normalize_url(url))
    except MalformedUrlError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(EXIT_MALFORMED)


@app.command()
def heuristics(url: str = typer.Option(..., "--url")) -> None:
    """Print lexical heuristics for a URL without contacting any provider."""
    typer.echo(json.dumps(evaluate_heuristics(url).model_dump(), indent=2))


if __name__ == "__main__":
    app()
