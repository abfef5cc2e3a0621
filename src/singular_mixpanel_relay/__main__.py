"""Main CLI entry point for the singular-mixpanel-relay.

This module provides a command-line interface using Typer to replay Singular
postbacks through the relay without the serverless runtime:

1.  Loading configuration (`.env` first, then the environment).
2.  Reading a postback from a JSON file / stdin or from `--param` pairs.
3.  Running the handler (extract, map, deliver) or, for `inspect`, the mapping
    stages only.
4.  Printing the resulting response body or mapped payload.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any, List, Optional

import typer
from dotenv import find_dotenv, load_dotenv

# Load .env file if present (before any config access)
env_file = find_dotenv(usecwd=True)
if env_file:
    load_dotenv(env_file)
    logging.debug("Loaded environment from %s", env_file)

from .config import get_settings
from .errors import ValidationError
from .handler import handle_postback, prepare_postback
from .mapping.tables import build_tables

app = typer.Typer(help="Singular to Mixpanel attribution relay CLI")


def _build_event(payload: Optional[str], params: List[str]) -> dict[str, Any]:
    """Turn CLI input into the event shape the handler expects.

    A payload file becomes the raw JSON `body` (decoded by the extractor, so
    malformed files surface as a 400 like they would in production). `--param`
    pairs become `queryStringParameters` as string values, exactly as a GET
    postback would deliver them.
    """
    if payload:
        if payload == "-":
            body = sys.stdin.read()
        else:
            with open(payload, "r", encoding="utf-8") as f:
                body = f.read()
        return {"body": body}
    query: dict[str, str] = {}
    for pair in params:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        query[key] = value
    return {"queryStringParameters": query or None}


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """singular-mixpanel-relay CLI.

    Use a subcommand like 'ship' to process a postback.
    """
    pass


@app.command(help="Process one postback end to end and print the response body.")
def ship(
    payload: Optional[str] = typer.Option(
        None, help="Path to a JSON postback body ('-' reads stdin)"
    ),
    param: List[str] = typer.Option(
        [], "--param", "-p", help="Query-string postback field as key=value (repeatable)"
    ),
    dry_run: Optional[bool] = typer.Option(
        None,
        "--dry-run/--no-dry-run",
        help="If true, map and log only (no Mixpanel calls). If not specified, uses DRY_RUN from config/env.",
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    # Respect .env DRY_RUN when the flag is omitted
    effective_dry_run = settings.DRY_RUN if dry_run is None else dry_run

    event = _build_event(payload, param)
    response = handle_postback(event, settings=settings, dry_run=effective_dry_run)
    typer.echo(response["body"])
    if response["statusCode"] != 200:
        raise typer.Exit(code=1)


@app.command(help="Map a postback without delivering it and print the result as JSON.")
def inspect(
    payload: Optional[str] = typer.Option(
        None, help="Path to a JSON postback body ('-' reads stdin)"
    ),
    param: List[str] = typer.Option(
        [], "--param", "-p", help="Query-string postback field as key=value (repeatable)"
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    event = _build_event(payload, param)
    try:
        _record, mapped = prepare_postback(event, build_tables(settings))
    except ValidationError as e:
        typer.echo(json.dumps({"error": e.message}))
        raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {
                "decision": mapped.decision.model_dump(),
                "event": mapped.event.model_dump(),
            },
            indent=2,
            default=str,
        )
    )


if __name__ == "__main__":  # pragma: no cover
    app()
