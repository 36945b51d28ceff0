"""Pydantic schemas for refresh-job status reporting."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from fa_viewer.core.schemas.films import ListSnapshot

JobState = Literal["idle", "running", "done", "error"]


class JobStatus(BaseModel):
    """Result of a status poll for one list key.

    Attributes:
        key: List key the status refers to.
        status: ``idle`` (no job and no snapshot), ``running``, ``done`` or
            ``error``.
        progress: Human-readable phase while running.
        error: Failure message when ``status="error"``.
        snapshot: The stored list when ``status="done"``.
        already_running: Set by ``start`` when a job was already in flight.
    """

    key: str
    status: JobState
    progress: Optional[str] = None
    error: Optional[str] = None
    snapshot: Optional[ListSnapshot] = None
    already_running: bool = False
