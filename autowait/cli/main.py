"""
CLI entrypoint.

- doctor:   print effective settings and check the driver executable
- actions:  list registered script actions
- validate: offline script check against the registered params models
- run:      spawn the driver, launch a browser, run the script on one page
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Tuple

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..core import registry
from ..core.action import Script
from ..core.controller.runner import Runner, StepOutcome
from ..core.errors import AutowaitError
from ..core.settings import Settings, settings

app = typer.Typer(help="autowait CLI")
console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def _root(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Root log level"),
) -> None:
    setup_logging(log_level)


def _load_script(path: Path, command: str) -> Script:
    if not path.exists():
        typer.secho(f"[{command}] file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    try:
        return Script.load(path)
    except (ValidationError, ValueError) as ve:
        typer.secho(f"[{command}] invalid script file", fg=typer.colors.RED)
        console.print(ve)
        raise typer.Exit(code=2)


def _import_actions() -> None:
    # registration happens on import
    import autowait.actions.impl  # noqa: F401


@app.command("doctor")
def doctor() -> None:
    """Environment check: print key settings and locate the driver."""
    console.print("[bold green]autowait[/] environment")
    console.print(f"- driver:   {settings.driver_path} {' '.join(settings.driver_args)}")
    found = shutil.which(settings.driver_path) or (settings.driver_path if Path(settings.driver_path).exists() else None)
    console.print(f"- on PATH:  {'[green]yes[/]' if found else '[red]no[/]'}")
    console.print(f"- headless: {settings.headless}")
    console.print(f"- timeout:  {settings.default_timeout_ms:g}ms (navigation: {settings.navigation_timeout_ms or 'same'})")
    console.print(f"- poll:     {settings.poll_interval_ms:g}ms, settle: {settings.settle_timeout_ms:g}ms")


@app.command("actions")
def actions() -> None:
    """List registered script actions."""
    _import_actions()
    table = Table(title="Script Actions", show_header=True, header_style="bold")
    table.add_column("name")
    table.add_column("params")
    table.add_column("summary")
    for name, meta in sorted(registry.list_actions().items()):
        fields = ", ".join(meta.params_model.model_fields) if meta.params_model else "-"
        table.add_row(name, fields, meta.summary or "-")
    console.print(table)


@app.command("validate")
def validate(script: Path = typer.Argument(..., help="Path to JSON script (ActionSpec[] or {steps: [...]})")) -> None:
    """
    Offline validation: check every step against the params model bound in the
    registry. Prints a table; exits non-zero if any step is invalid.
    """
    parsed = _load_script(script, "validate")
    _import_actions()

    table = Table(title="Validation Results", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("name")
    table.add_column("result")
    table.add_column("detail")

    failures = 0
    for i, spec in enumerate(parsed.steps, start=1):
        try:
            registry.validate_spec(spec)
            table.add_row(str(i), spec.name, "[green]OK[/]", "-")
        except KeyError as ke:
            failures += 1
            table.add_row(str(i), spec.name, "[red]Not Registered[/]", str(ke))
        except ValidationError as ve:
            failures += 1
            msg = ve.errors()[0].get("msg", "invalid args")
            table.add_row(str(i), spec.name, "[red]Invalid Args[/]", msg)
        except ValueError as e:
            failures += 1
            table.add_row(str(i), spec.name, "[red]Invalid Args[/]", str(e))

    console.print(table)
    if failures:
        raise typer.Exit(code=1)
    typer.secho("[validate] all steps passed", fg=typer.colors.GREEN)


def render_outcomes(rows: list[StepOutcome]) -> Table:
    table = Table(title="Run Results", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("name")
    table.add_column("result")
    table.add_column("tries", justify="right")
    table.add_column("ms", justify="right")
    table.add_column("detail")
    for r in rows:
        result = "[green]OK[/]" if r.ok else "[red]FAIL[/]"
        table.add_row(str(r.index), r.name, result, str(r.attempts), f"{r.elapsed_ms:.0f}", r.detail)
    return table


@app.command("run")
def run(
    script: Path = typer.Argument(..., help="Path to JSON script"),
    headless: bool = typer.Option(settings.headless, "--headless/--no-headless", help="Run browser headless"),
    browser: str = typer.Option("chromium", "--browser", help="Browser name forwarded to the driver"),
    retries: int = typer.Option(0, "--retries", help="Retry times for steps that timed out"),
    timeout_ms: Optional[float] = typer.Option(None, "--timeout-ms", help="Page default timeout"),
    debug_protocol: bool = typer.Option(False, "--debug-protocol", help="Log every protocol message"),
    # NOTE: Typer parses tuple as two space-separated ints, e.g. "--random-delay-ms 500 1500"
    random_delay_ms: Tuple[int, int] = typer.Option(
        (0, 0),
        "--random-delay-ms",
        help="Random delay range in ms, e.g. --random-delay-ms 500 1500",
    ),
) -> None:
    """
    Run a script: read JSON -> param check -> spawn driver -> run steps on one page.
    Prints a table of results; returns non-zero on any failure.
    """
    parsed = _load_script(script, "run")
    _import_actions()
    problems = registry.validate_script(parsed.steps)
    if problems:
        for i, name, err in problems:
            typer.secho(f"[run] step {i} ({name}) invalid: {err}", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    cfg: Settings = settings.model_copy(update={"headless": headless, "debug_protocol": debug_protocol})
    if debug_protocol:
        logging.getLogger("autowait.core.connection").setLevel(logging.DEBUG)

    async def _run() -> int:
        from ..api.session import Session

        async with Session(browser_name=browser, settings=cfg) as session:
            page = await session.new_page()
            default_timeout = timeout_ms if timeout_ms is not None else parsed.default_timeout_ms
            if default_timeout is not None:
                page.set_default_timeout(default_timeout)
            if parsed.start_url:
                await page.goto(parsed.start_url)

            rnd = None if (random_delay_ms[0] == 0 and random_delay_ms[1] == 0) else random_delay_ms
            runner = Runner(retries=retries, random_delay_ms=rnd)
            rows = await runner.run(page, parsed.steps)

        console.print(render_outcomes(rows))
        return 1 if any(not r.ok for r in rows) or len(rows) < len(parsed.steps) else 0

    try:
        code = asyncio.run(_run())
    except (AutowaitError, OSError, RuntimeError) as e:
        typer.secho(f"[run] {type(e).__name__}: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    if code != 0:
        raise typer.Exit(code=code)
    typer.secho("[run] completed successfully", fg=typer.colors.GREEN)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
