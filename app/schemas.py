"""Pydantic schemas for the status API."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class WorkerState(str, Enum):
    """Lifecycle states reported for each sensor worker."""

    idle = "idle"
    running = "running"
    stopped = "stopped"
    faulted = "faulted"


class WorkerReport(BaseModel):
    """Counters and timestamps of one sensor worker."""

    name: str
    state: WorkerState
    samples: int = Field(..., ge=0)
    emitted: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)
    last_sample_at: Optional[int] = Field(
        default=None, description="Milliseconds since the epoch of the last good sample."
    )
    last_emit_at: Optional[int] = None


class PublisherReport(BaseModel):
    delivered: int = Field(..., ge=0)
    dropped: int = Field(..., ge=0)
    retried: int = Field(..., ge=0)


class RuntimeStatus(BaseModel):
    """Snapshot of the whole sampling and delivery pipeline."""

    workers: List[WorkerReport] = Field(default_factory=list)
    publisher: PublisherReport
    queue_depth: int = Field(..., ge=0)
    bus_guard_broken: bool = False
