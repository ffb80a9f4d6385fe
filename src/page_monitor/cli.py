"""Command-line interface for page-monitor."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console, Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from page_monitor import __version__
from page_monitor.config import (
    AppConfig,
    EngineConfig,
    MonitorConfiguration,
    WaitOptions,
)
from page_monitor.dispatcher import FetchDispatcher
from page_monitor.models import ExtractionRequest, FetchResult, WaitFor, utc_now
from page_monitor.validation import validate_config

app = typer.Typer(
    name="page-monitor",
    help="Extract a fragment of a web page with a CSS selector.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"page-monitor version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Route engine logs to stderr (verbose) and/or a file."""
    handlers: list[logging.Handler] = []
    if verbose:
        handlers.append(RichHandler(console=err_console, show_path=False))
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8", delay=True)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)
    if not handlers:
        handlers.append(logging.NullHandler())

    root = logging.getLogger("page_monitor")
    root.handlers = handlers
    root.setLevel(logging.DEBUG)
    root.propagate = False


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Monitor web page content selected by CSS selectors."""
    pass


def render_result(
    result: FetchResult,
    config: MonitorConfiguration,
    compact: bool = False,
    out: Console | None = None,
) -> None:
    """Show a fetch result the way the desktop widget lays it out."""
    out = out or console
    parts: list = [Text(config.url, style="dim", overflow="ellipsis", no_wrap=True)]

    if result.error:
        error = result.error
        parts.append(Text.from_markup(f"{error.icon} [bold orange3]{error.label}[/bold orange3]"))
        parts.append(Text(error.display(compact=compact), style="red"))
        parts.append(Text(error.guidance, style="italic"))
    elif config.use_server and config.fetch_all_matches:
        matches = result.matches
        for index, match in enumerate(matches):
            parts.append(Text(match))
            if index < len(matches) - 1:
                parts.append(Rule(style="dim"))
    else:
        parts.append(Text(result.content))

    indicators = []
    if config.use_server:
        indicators.append("[on green] Server [/]")
    if config.use_javascript:
        indicators.append("[on blue] JS [/]")
    updated = result.last_updated.astimezone().strftime("%Y-%m-%d %H:%M")
    parts.append(Text.from_markup(f"[dim]Updated: {updated}[/dim]  " + " ".join(indicators)))

    out.print(Panel(Group(*parts), title=config.label, title_align="left", expand=False))


def _execute(
    config: MonitorConfiguration,
    engine: EngineConfig,
    as_json: bool,
    compact: bool,
) -> None:
    dispatcher = FetchDispatcher(engine)
    try:
        result = asyncio.run(dispatcher.fetch(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        raise typer.Exit(130)

    if as_json:
        console.print_json(result.model_dump_json())
    else:
        render_result(result, config, compact=compact)

    if result.error:
        raise typer.Exit(1)


@app.command()
def fetch(
    url: str = typer.Argument(..., help="URL of the page to monitor"),
    selector: str = typer.Argument(
        ..., help="CSS selector; append :html for markup or :text for text only"
    ),
    label: str = typer.Option("Website Content", "--label", "-l", help="Label shown above the content"),
    js: bool = typer.Option(False, "--js/--no-js", help="Render JavaScript (requires server mode)"),
    server: Optional[str] = typer.Option(
        None, "--server", "-s", help="Extraction server URL; enables server mode"
    ),
    api_key: str = typer.Option(
        "", "--api-key", envvar="PAGE_MONITOR_API_KEY", help="API key for the extraction server"
    ),
    all_matches: bool = typer.Option(
        False, "--all", "-a", help="Fetch all matching elements (requires server mode)"
    ),
    local_worker: bool = typer.Option(
        False, "--local-worker", help="Run extraction in a local worker process (server mode)"
    ),
    load_state: str = typer.Option(
        "", "--load-state", help="Wait for a load state: domcontentloaded, load or networkidle"
    ),
    wait_selector: str = typer.Option("", "--wait-selector", help="Wait for this selector to appear"),
    wait_time: float = typer.Option(0.0, "--wait-time", help="Extra seconds to wait (0-10)"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    compact: bool = typer.Option(False, "--compact", help="Use short error messages"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show diagnostic logs"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Append diagnostic logs to a file"),
):
    """
    Fetch the content matching SELECTOR on URL once.

    Examples:

        page-monitor fetch https://example.com h1

        page-monitor fetch https://example.com ".price" --server http://127.0.0.1:5000 --js

        page-monitor fetch https://example.com "li" --server http://127.0.0.1:5000 --all
    """
    setup_logging(verbose, log_file)
    use_server = bool(server) or local_worker
    wait_enabled = bool(load_state or wait_selector or wait_time)
    extra = {"server_url": server} if server else {}
    config = MonitorConfiguration(
        url=url,
        label=label,
        selector=selector,
        use_javascript=js,
        use_server=use_server,
        fetch_all_matches=all_matches,
        api_key=api_key,
        wait_options=WaitOptions(
            enabled=wait_enabled,
            load_state=load_state,
            wait_for_selector=wait_selector,
            additional_wait_time=wait_time,
        ),
        **extra,
    )

    engine = EngineConfig()
    if local_worker:
        engine.worker_command = EngineConfig.local_worker_command()

    _execute(config, engine, as_json, compact)


def _load_config(path: Path) -> AppConfig:
    try:
        return AppConfig.from_toml(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    except (ValueError, ValidationError) as e:
        # tomllib.TOMLDecodeError is a ValueError
        console.print(f"[red]Invalid config file {path}: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    config_path: Path = typer.Argument(..., help="TOML file with [monitor] and [engine] tables"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    compact: bool = typer.Option(False, "--compact", help="Use short error messages"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show diagnostic logs"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Append diagnostic logs to a file"),
):
    """Fetch the monitor described by a config file."""
    setup_logging(verbose, log_file)
    app_config = _load_config(config_path)
    _execute(app_config.monitor, app_config.engine, as_json, compact)


@app.command()
def validate(
    config_path: Path = typer.Argument(..., help="TOML config file to check"),
):
    """Check a config file without fetching anything."""
    app_config = _load_config(config_path)
    problem = validate_config(app_config.monitor)
    if problem:
        console.print(f"[red]{problem}[/red]")
        raise typer.Exit(1)
    console.print("[green]Configuration is valid.[/green]")


@app.command()
def init(
    output: Path = typer.Argument(Path("monitor.toml"), help="Where to write the config"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a config file with default settings."""
    if output.exists() and not force:
        console.print(f"[red]{output} already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(1)
    output.write_text(AppConfig().to_toml(), encoding="utf-8")
    console.print(f"[green]Wrote {output}[/green]")


@app.command(hidden=True)
def worker(
    url: str = typer.Option(..., "--url", "-u"),
    selector: str = typer.Option(..., "--selector", "-s"),
    timeout: int = typer.Option(45, "--timeout"),
    render_js: bool = typer.Option(False, "--render-js"),
    all_matches: bool = typer.Option(False, "--all-matches"),
    load_state: Optional[str] = typer.Option(None, "--load-state"),
    wait_for_selector: Optional[str] = typer.Option(None, "--wait-for-selector"),
    wait_time: Optional[float] = typer.Option(None, "--wait-time"),
    debug: bool = typer.Option(False, "--debug", "-d"),
):
    """Local extraction worker: prints one canonical JSON line."""
    # Imported here so the other commands do not pay for it
    from page_monitor.extractor.response import CanonicalResponse
    from page_monitor.worker import run_extraction

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(levelname)s %(asctime)s] %(message)s",
    )
    wait_for = None
    if load_state or wait_for_selector or wait_time:
        wait_for = WaitFor(
            load_state=load_state, wait_for_selector=wait_for_selector, wait_time=wait_time
        )
    request = ExtractionRequest(
        url=url,
        selector=selector,
        timeout=timeout,
        first_only=not all_matches,
        render_js=render_js or None,
        wait_for=wait_for,
    )
    try:
        response = asyncio.run(run_extraction(request))
    except Exception as e:
        logging.getLogger(__name__).exception("Unexpected error in worker")
        failure = CanonicalResponse(
            content="", error=f"Unexpected error: {e}", date=utc_now().isoformat()
        )
        typer.echo(failure.model_dump_json())
        raise typer.Exit(1)
    typer.echo(response.model_dump_json())


if __name__ == "__main__":
    app()
