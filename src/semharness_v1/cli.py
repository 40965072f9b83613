from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Settings
from .dispatch import Harness, dispatch, exit_status
from .errors import ConfigurationError, HarnessError
from .execution.executors import StrategyOutcome
from .ledger.ledger import summarize
from .logging_utils import configure_logging
from .utils import canonical_dumps, read_json

app = typer.Typer(help="semharness: run, prove and track semantics test artifacts")
console = Console()
err_console = Console(stderr=True, soft_wrap=True)

ARTIFACT_ARGUMENT = typer.Argument(..., help="Program or specification to execute.")
EXPECTED_ARGUMENT = typer.Argument(
    None, help="Expected output file (interactive tests only)."
)
COUNT_ARGUMENT = typer.Argument(10, min=0, help="Maximum number of paths to print.")
CONFIG_OPTION = typer.Option(None, "--config", exists=True, dir_okay=False)
ARG_OPTION = typer.Option(None, "--arg", help="Extra argument passed to the tool.")
ENV_OPTION = typer.Option(None, "--env", help="KEY=VALUE added to the tool environment.")
MODE_OPTION = typer.Option(None, "--mode")
SCHEDULE_OPTION = typer.Option(None, "--schedule")
LEDGER_DIR_OPTION = typer.Option(None, "--ledger-dir", file_okay=False)
LOG_LEVEL_OPTION = typer.Option(None, "--log-level")
SEED_OPTION = typer.Option(None, "--seed", help="Fix the shuffle for reproducible triage.")
JSON_OPTION = typer.Option(False, "--json")
TOP_OPTION = typer.Option(10, "--top", min=0)

ledger_app = typer.Typer(help="Ledger commands")
app.add_typer(ledger_app, name="ledger")


@app.callback()
def main() -> None:
    pass


def _read_config(config: Path) -> Settings:
    try:
        payload = read_json(config)
    except orjson.JSONDecodeError as exc:
        raise _fail(ConfigurationError(f"invalid config {config}: {exc}")) from exc
    if not isinstance(payload, dict):
        raise _fail(ConfigurationError(f"invalid config {config}: expected a JSON object"))
    try:
        return Settings(**payload)
    except ValidationError as exc:
        raise _fail(ConfigurationError(f"invalid config {config}: {exc}")) from exc


def _load_settings(config: Optional[Path], **overrides: Any) -> Settings:
    settings = Settings() if config is None else _read_config(config)
    update = {key: value for key, value in overrides.items() if value is not None}
    if update:
        settings = settings.model_copy(update=update)
    configure_logging(settings.log_level, settings.log_file)
    return settings


def _parse_env(pairs: Optional[List[str]]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env


def _fail(exc: HarnessError) -> typer.Exit:
    err_console.print(f"[bold red]error[/bold red] {escape(str(exc))}")
    return typer.Exit(code=exc.exit_code)


def _display(path: str) -> str:
    return os.fsencode(path).decode("utf-8", errors="replace")


def _finish(outcome: StrategyOutcome) -> None:
    if outcome.result.stdout:
        typer.echo(outcome.result.stdout, nl=False)
    if outcome.result.stderr:
        typer.echo(outcome.result.stderr, nl=False, err=True)
    if outcome.diff is not None:
        typer.echo(outcome.diff, nl=False, err=True)
    raise typer.Exit(code=exit_status(outcome.returncode))


def _invoke(command: str, settings: Settings, *args: Any, **kwargs: Any) -> None:
    harness = Harness(settings)
    try:
        outcome = dispatch(harness, command, *args, **kwargs)
    except HarnessError as exc:
        raise _fail(exc) from exc
    _finish(outcome)


def _tool_command(command: str) -> None:
    def handler(
        artifact: Path = ARTIFACT_ARGUMENT,
        extra: Optional[List[str]] = ARG_OPTION,
        env: Optional[List[str]] = ENV_OPTION,
        mode: Optional[str] = MODE_OPTION,
        schedule: Optional[str] = SCHEDULE_OPTION,
        config: Optional[Path] = CONFIG_OPTION,
        log_level: Optional[str] = LOG_LEVEL_OPTION,
    ) -> None:
        settings = _load_settings(config, mode=mode, schedule=schedule, log_level=log_level)
        _invoke(command, settings, artifact, extra_args=extra or [], env=_parse_env(env))

    handler.__name__ = f"{command}_cmd"
    app.command(command)(handler)


for _name in ("run", "debug", "search", "prove", "interpret"):
    _tool_command(_name)


@app.command("test")
def test_cmd(
    artifact: Path = ARTIFACT_ARGUMENT,
    expected: Optional[Path] = EXPECTED_ARGUMENT,
    extra: Optional[List[str]] = ARG_OPTION,
    env: Optional[List[str]] = ENV_OPTION,
    mode: Optional[str] = MODE_OPTION,
    schedule: Optional[str] = SCHEDULE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    settings = _load_settings(config, mode=mode, schedule=schedule, log_level=log_level)
    _invoke(
        "test",
        settings,
        artifact,
        expected_output=expected,
        extra_args=extra or [],
        env=_parse_env(env),
    )


@app.command("test-profile")
def test_profile_cmd(
    artifact: Path = ARTIFACT_ARGUMENT,
    expected: Optional[Path] = EXPECTED_ARGUMENT,
    extra: Optional[List[str]] = ARG_OPTION,
    env: Optional[List[str]] = ENV_OPTION,
    mode: Optional[str] = MODE_OPTION,
    schedule: Optional[str] = SCHEDULE_OPTION,
    ledger_dir: Optional[Path] = LEDGER_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    settings = _load_settings(
        config, mode=mode, schedule=schedule, ledger_dir=ledger_dir, log_level=log_level
    )
    _invoke(
        "test-profile",
        settings,
        artifact,
        expected_output=expected,
        extra_args=extra or [],
        env=_parse_env(env),
    )


@app.command("get-failing")
def get_failing_cmd(
    count: int = COUNT_ARGUMENT,
    seed: Optional[int] = SEED_OPTION,
    as_json: bool = JSON_OPTION,
    ledger_dir: Optional[Path] = LEDGER_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    settings = _load_settings(config, ledger_dir=ledger_dir, log_level=log_level)
    harness = Harness(settings)
    try:
        paths = dispatch(harness, "get-failing", count, seed=seed)
    except HarnessError as exc:
        raise _fail(exc) from exc
    if as_json:
        typer.echo(canonical_dumps([_display(path) for path in paths]).decode("utf-8"))
        return
    for path in paths:
        typer.echo(os.fsencode(path))


@ledger_app.command("summary")
def ledger_summary_cmd(
    top: int = TOP_OPTION,
    as_json: bool = JSON_OPTION,
    ledger_dir: Optional[Path] = LEDGER_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    settings = _load_settings(config, ledger_dir=ledger_dir)
    if not settings.ledger_dir.is_dir():
        raise _fail(ConfigurationError(f"no ledger at {settings.ledger_dir}"))
    report = summarize(settings.ledger(), top=top)
    for row in report["slowest"]:
        row["path"] = _display(row["path"])
    if as_json:
        typer.echo(canonical_dumps(report).decode("utf-8"))
        return
    console.print(
        f"passing={report['passing']} failing={report['failing']} "
        f"runs={report['runs']} total_seconds={report['total_seconds']}"
    )
    table = Table(title="Slowest artifacts")
    table.add_column("seconds", justify="right")
    table.add_column("path")
    for row in report["slowest"]:
        table.add_row(str(row["seconds"]), escape(row["path"]))
    console.print(table)
