"""Background job status commands."""

import click

from business_case_ai.cli.output import emit_exception, emit_success
from business_case_ai.config import Settings
from business_case_ai.core.errors import JobNotFoundError
from business_case_ai.core.jobs import DEFAULT_MAX_AGE, JobStore


@click.group("job")
def job() -> None:
    """Inspect background analysis jobs."""


@job.command("status")
@click.argument("job_id")
@click.pass_obj
def status_cmd(settings: Settings, job_id: str) -> None:
    """Show the status of JOB_ID."""
    try:
        status = JobStore(settings.jobs_dir).get_status(job_id)
    except JobNotFoundError as exc:
        emit_exception(exc)
    emit_success({"job_id": job_id, **status})


@job.command("cleanup")
@click.option("--max-age", type=int, default=DEFAULT_MAX_AGE, show_default=True, help="Age in seconds.")
@click.pass_obj
def cleanup_cmd(settings: Settings, max_age: int) -> None:
    """Delete failed jobs and jobs older than --max-age."""
    removed = JobStore(settings.jobs_dir).cleanup(max_age)
    emit_success({"removed": removed})
