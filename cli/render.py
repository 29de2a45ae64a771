from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer

from models.records import Baseline


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Publisher")
    publisher = payload.get("publisher") or {}
    echo_key_values(
        [
            ("delivered", publisher.get("delivered")),
            ("dropped", publisher.get("dropped")),
            ("retried", publisher.get("retried")),
            ("queue_depth", payload.get("queue_depth")),
            ("bus_guard_broken", payload.get("bus_guard_broken")),
        ]
    )

    workers = payload.get("workers") or []
    typer.echo()
    echo_heading("Workers")
    if not workers:
        typer.echo("No workers running.")
        return
    for worker in workers:
        state = worker.get("state")
        color = typer.colors.RED if state == "faulted" else None
        typer.secho(
            f"  - {worker.get('name')}: {state} "
            f"samples={worker.get('samples')} emitted={worker.get('emitted')} "
            f"errors={worker.get('errors')}",
            fg=color,
        )


def render_baseline(baseline: Optional[Baseline]) -> None:
    echo_heading("SGP30 Baseline")
    if baseline is None:
        typer.echo("uncalibrated")
        return
    echo_key_values(
        [
            ("co2", baseline.co2_reference),
            ("tvoc", baseline.voc_reference),
        ]
    )
