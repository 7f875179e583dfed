"""Run a business-case analysis from a JSON inputs file."""

import dataclasses
import json
import logging
from functools import partial
from typing import IO

import click

from business_case_ai.cli.output import emit_error, emit_success
from business_case_ai.config import Settings
from business_case_ai.core.jobs import JobRunner, JobStore
from business_case_ai.core.workflow import build_orchestrator

logger = logging.getLogger(__name__)


@click.command("analyze")
@click.argument("input_json", type=click.File("r", encoding="utf-8"))
@click.option("--no-ai", is_flag=True, help="Skip every LLM call and use fallbacks.")
@click.option("--background", is_flag=True, help="Run as a job and report its id first.")
@click.option("--debug", "include_debug", is_flag=True, help="Include the step trail in the output.")
@click.pass_obj
def analyze_cmd(settings: Settings, input_json: IO[str], no_ai: bool, background: bool, include_debug: bool) -> None:
    """Analyze the company described in INPUT_JSON ('-' for stdin)."""
    try:
        inputs = json.load(input_json)
    except json.JSONDecodeError as exc:
        emit_error(
            f"Inputs are not valid JSON: {exc}",
            code="VALIDATION_ERROR",
            remediation="Pass a JSON object with at least company_name",
        )
    if not isinstance(inputs, dict):
        emit_error("Inputs must be a JSON object", code="VALIDATION_ERROR")

    if no_ai:
        settings = dataclasses.replace(settings, ai_enabled=False)

    if background:
        store = JobStore(settings.jobs_dir)
        runner = JobRunner(partial(build_orchestrator, settings), store)
        job_id = runner.enqueue(inputs)
        emit_success({"job_id": job_id, "status": "pending"})
        # The worker is a daemon thread; keep the process alive until it ends
        runner.wait(job_id)
        return

    orchestrator = build_orchestrator(settings)
    try:
        result = orchestrator.run(inputs)
    finally:
        orchestrator.analyst.transport.close()

    if not result.success:
        emit_error(result.error or "Analysis failed", code="RUN_FAILED", details={"run_id": result.run_id})

    payload = result.to_dict()
    if not include_debug:
        payload.pop("debug", None)
    emit_success(payload, warnings=[f"{w['code']}: {w['message']}" for w in result.warnings])
