from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from app.main import create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_baseline, render_status
from logging_config import configure_logging
from services.baseline import build_default_baseline_store
from services.runtime import build_default_runtime
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Indoor sensor sampling service publishing to an MQTT broker.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Status API base URL (defaults to STATUS_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the status API to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("run")
def run_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface the status API binds to."),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        help="Status API port; 0 disables it (defaults to STATUS_PORT env).",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    """Start every enabled sensor worker and the publisher."""
    configure_logging(log_level.upper() if log_level else None)
    settings = get_settings()
    status_port = settings.status_port if port is None else port

    runtime = build_default_runtime()
    runtime.start()
    try:
        if status_port:
            uvicorn.run(create_app(runtime), host=host, port=status_port, log_config=None)
        else:
            runtime.wait()
    except KeyboardInterrupt:
        typer.echo("Interrupted, shutting down.")
    finally:
        runtime.shutdown()


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show worker and publisher counters of a running instance."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("baseline")
def baseline_command(
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        file_okay=False,
        help="Directory holding the baseline files (defaults to BASELINE_DIR env).",
    ),
) -> None:
    """Print the persisted gas sensor baseline."""
    store = build_default_baseline_store(str(directory) if directory is not None else None)
    render_baseline(store.load())
