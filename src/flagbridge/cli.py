"""
CLI: ``flagbridge``. Inspect aliases, normalize contexts, evaluate flags offline.

Commands::

    flagbridge aliases device_id
    flagbridge normalize --context '{"deviceId": "d1", "plan": "pro"}'
    flagbridge evaluate checkout --variants variants.json \\
        --context '{"user_id": "u1"}' --type integer --default 0

``evaluate`` reads variants from a JSON file mapping flag names to variants
(``{"checkout": {"key": "on", "payload": 3}}``) and serves them through a
:class:`StaticAssignmentClient`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from flagbridge.aliases import build_alias_table, permutations
from flagbridge.client import StaticAssignmentClient
from flagbridge.errors import FlagBridgeError
from flagbridge.evaluation import FlagType, Reason
from flagbridge.keys import RecordShape
from flagbridge.logging import configure_logging
from flagbridge.normalization import normalize
from flagbridge.provider import ExperimentProvider
from flagbridge.settings import ProviderSettings

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="flagbridge",
    help="flagbridge: feature-flag context normalization and typed evaluation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_DEFAULTS: dict[FlagType, Any] = {
    FlagType.BOOLEAN: False,
    FlagType.STRING: "",
    FlagType.INTEGER: 0,
    FlagType.FLOAT: 0.0,
    FlagType.OBJECT: None,
}


@app.callback()
def main(
    log_level: str | None = typer.Option(  # noqa: UP007
        None, "--log-level", help="Log level for stderr logs [default: FLAGBRIDGE_LOG_LEVEL]"
    ),
) -> None:
    """flagbridge CLI."""
    settings = _load_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.json_logs,
        cache_loggers=False,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _fail(message: str, code: int = 2) -> typer.Exit:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    return typer.Exit(code=code)


def _load_settings(**overrides: Any) -> ProviderSettings:
    """Settings from FLAGBRIDGE_* variables and .env; invalid configuration exits 2."""
    try:
        return ProviderSettings(**overrides)
    except ValidationError as e:
        raise _fail(f"invalid configuration: {e}") from e


def _parse_json_object(text: str, option: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise _fail(f"{option} is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise _fail(f"{option} must be a JSON object")
    return data


def _parse_default(flag_type: FlagType, text: str | None) -> Any:
    if text is None:
        return _DEFAULTS[flag_type]
    match flag_type:
        case FlagType.STRING:
            return text
        case FlagType.BOOLEAN:
            lowered = text.lower()
            if lowered not in ("true", "false"):
                raise _fail(f"--default must be true or false, got {text!r}")
            return lowered == "true"
        case FlagType.INTEGER:
            try:
                return int(text)
            except ValueError as e:
                raise _fail(f"--default must be an integer, got {text!r}") from e
        case FlagType.FLOAT:
            try:
                return float(text)
            except ValueError as e:
                raise _fail(f"--default must be a number, got {text!r}") from e
        case FlagType.OBJECT:
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise _fail(f"--default is not valid JSON: {e.msg}") from e


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("aliases")
def aliases(
    key: str = typer.Argument(..., help="Canonical key or any attribute name"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List the spellings recognized for KEY."""
    spellings = list(dict.fromkeys(permutations(key)))
    canonical = build_alias_table().get(key)

    if as_json:
        console.print_json(
            json.dumps(
                {"key": key, "canonical": canonical.value if canonical else None, "aliases": spellings}
            )
        )
        return

    if canonical is None:
        console.print(f"[yellow]{key!r} is not a recognized attribute name[/yellow]")
    else:
        console.print(f"[bold]{key}[/bold] → [cyan]{canonical.value}[/cyan]")
    for spelling in spellings:
        console.print(f"  {spelling}")


@app.command("normalize")
def normalize_context(
    context: str = typer.Option(..., "--context", "-c", help="Evaluation context as a JSON object"),
    shape: RecordShape = typer.Option(RecordShape.SUBJECT, "--shape", help="Record shape"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show how a context maps onto canonical fields."""
    attributes = _parse_json_object(context, "--context")
    record = normalize(attributes, build_alias_table(), shape)

    if as_json:
        console.print_json(
            json.dumps(
                {
                    "shape": record.shape.value,
                    "canonical": record.as_fields(),
                    "overflow": record.overflow,
                    "has_identity": record.has_identity(),
                },
                default=str,
            )
        )
        return

    out = Table(title=f"Normalized ({record.shape.value})")
    out.add_column("Field")
    out.add_column("Value")
    out.add_column("Kind")
    for key, value in record.canonical.items():
        out.add_row(key.value, json.dumps(value, default=str), "canonical")
    for name, value in record.overflow.items():
        out.add_row(str(name), json.dumps(value, default=str), "overflow")
    console.print(out)


@app.command("evaluate")
def evaluate(
    flag: str = typer.Argument(..., help="Flag name"),
    variants: Path = typer.Option(
        ..., "--variants", "-v", exists=True, dir_okay=False, help="JSON file of flag → variant"
    ),
    context: str = typer.Option("{}", "--context", "-c", help="Evaluation context as a JSON object"),
    flag_type: FlagType = typer.Option(FlagType.BOOLEAN, "--type", "-t", help="Requested value type"),
    default: str | None = typer.Option(None, "--default", "-d", help="Default value"),  # noqa: UP007
    deployment_key: str = typer.Option(
        "local", "--deployment-key", envvar="FLAGBRIDGE_DEPLOYMENT_KEY", help="Deployment key"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Evaluate FLAG against variants from a file. Exits 1 on an error result."""
    attributes = _parse_json_object(context, "--context")
    default_value = _parse_default(flag_type, default)
    variant_data = _parse_json_object(variants.read_text(encoding="utf-8"), "--variants")

    settings = _load_settings(deployment_key=deployment_key)

    try:
        client = StaticAssignmentClient(variant_data)
    except ValidationError as e:
        raise _fail(f"invalid variants file: {e}") from e

    try:
        provider = ExperimentProvider(settings, client=client)
    except FlagBridgeError as e:
        raise _fail(e.message) from e

    with provider:
        result = provider.evaluate(flag_type, flag, default_value, attributes)

    summary = {
        "flag": flag,
        "type": flag_type.value,
        "value": result.value,
        "variant": result.variant,
        "reason": result.reason.value,
        "error_kind": result.error_kind.value,
        "message": result.message,
        "metadata": dict(result.metadata),
    }

    if as_json:
        console.print_json(json.dumps(summary, default=str))
    else:
        out = Table(title=f"Flag {flag}")
        out.add_column("Field")
        out.add_column("Value")
        for name, value in summary.items():
            if value is not None:
                out.add_row(name, json.dumps(value, default=str) if not isinstance(value, str) else value)
        console.print(out)

    if result.reason == Reason.ERROR:
        raise typer.Exit(code=1)


__all__ = ["app"]
