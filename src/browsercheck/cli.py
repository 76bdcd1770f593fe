"""
CLI: ``browsercheck``: smoke-test a remote-debuggable browser container.

Usage::

    browsercheck run                                  # IMAGE_TAG or default image
    browsercheck run --image chrome-cdp-novnc:dev     # explicit image
    browsercheck run --timeout 60 --output results/   # write summary.json
    browsercheck run --json                           # machine-readable result

    browsercheck cleanup                              # remove leftover containers
    browsercheck config                               # show effective config

Exit code of ``run`` is 0 iff every probe passed and no fatal gate tripped.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from browsercheck import __version__

if TYPE_CHECKING:
    from browsercheck.config import SmokeConfig

app = typer.Typer(
    name="browsercheck",
    help="Readiness smoke test for Chrome CDP + noVNC containers.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"browsercheck {__version__}")
        raise typer.Exit()


def _load_config(**overrides: object) -> SmokeConfig:
    """Build the effective config; exit 1 on an invalid value."""
    from browsercheck.config import SmokeConfig

    try:
        return SmokeConfig.from_env(**overrides)
    except ValueError as exc:  # pydantic ValidationError is a ValueError
        err_console.print(f"[red]✗ Invalid configuration: {escape(str(exc))}[/]")
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """browsercheck CLI: smoke-test a browser container and tear it down."""


@app.command()
def run(
    image: str | None = typer.Option(None, "--image", "-i", help="Image under test (default: $IMAGE_TAG)."),
    name: str | None = typer.Option(None, "--name", "-n", help="Container name."),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Health wait deadline in seconds."),
    grace: float | None = typer.Option(None, "--grace", help="Delay after healthy, in seconds."),
    keep: bool = typer.Option(False, "--keep", help="Keep the container after the run."),
    output_dir: Path | None = typer.Option(None, "--output", "-o", help="Directory for run artifacts."),
    json_out: bool = typer.Option(False, "--json", help="Output the result as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    """Run the smoke test against a freshly started container."""
    from browsercheck.logging import configure_logging
    from browsercheck.reporter import Reporter
    from browsercheck.runner import SmokeRunner

    overrides: dict[str, object] = {}
    if image:
        overrides["image"] = image
    if name:
        overrides["container_name"] = name
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    if grace is not None:
        overrides["grace_seconds"] = grace
    if keep:
        overrides["keep_container"] = True
    if output_dir is not None:
        overrides["output_dir"] = output_dir
    if verbose:
        overrides["verbose"] = True

    config = _load_config(**overrides)
    configure_logging(level="DEBUG" if config.verbose else None)

    runner = SmokeRunner(config, reporter=Reporter(console=console, quiet=json_out))
    result = runner.run()

    if json_out:
        typer.echo(result.model_dump_json(indent=2))

    raise typer.Exit(code=result.exit_code or 0)


@app.command()
def cleanup() -> None:
    """Remove every container left behind by earlier runs."""
    from browsercheck.container import ContainerManager
    from browsercheck.errors import DockerNotFoundError

    try:
        mgr = ContainerManager()
    except DockerNotFoundError as exc:
        err_console.print(f"[red]✗ {exc}[/]")
        raise typer.Exit(code=1) from exc

    removed = mgr.cleanup_orphans()
    console.print(f"[green]✓ Removed {removed} container(s)[/]")


@app.command("config")
def show_config() -> None:
    """Print the effective configuration (defaults + environment)."""
    config = _load_config()
    typer.echo(config.model_dump_json(indent=2, exclude={"run_id"}))


if __name__ == "__main__":
    app()
