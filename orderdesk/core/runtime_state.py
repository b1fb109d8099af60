"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

from datetime import datetime

from orderdesk.utils.time import utcnow

_scheduler_active = False
_last_job_runs: dict[str, datetime] = {}


def set_scheduler_active(active: bool) -> None:
    global _scheduler_active
    _scheduler_active = active


def is_scheduler_active() -> bool:
    return _scheduler_active


def record_job_run(job_name: str) -> None:
    """Remember when a background job last completed in this process."""

    _last_job_runs[job_name] = utcnow()


def describe_job_runs() -> dict[str, str]:
    return {name: at.isoformat() for name, at in sorted(_last_job_runs.items())}
