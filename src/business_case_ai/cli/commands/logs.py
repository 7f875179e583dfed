"""Audit log integrity commands."""

from typing import Optional

import click

from business_case_ai.cli.output import emit_error, emit_success
from business_case_ai.config import Settings
from business_case_ai.core.integrity import ApiLogStore, CorruptionGuard


@click.group("logs")
def logs() -> None:
    """Inspect and maintain the LLM audit log."""


@logs.command("report")
@click.option("--log-id", default=None, help="Limit the report to one record.")
@click.pass_obj
def report_cmd(settings: Settings, log_id: Optional[str]) -> None:
    """Summarize corruption and truncation across recent records."""
    guard = CorruptionGuard(ApiLogStore(settings.log_path))
    report = guard.integrity_report(log_id)
    if log_id and not report["entries"]:
        emit_error(f"Log record not found: {log_id}", code="NOT_FOUND")
    emit_success(report)


@logs.command("reprocess")
@click.option("--limit", type=int, default=100, show_default=True, help="Records to scan.")
@click.pass_obj
def reprocess_cmd(settings: Settings, limit: int) -> None:
    """Re-validate recent records and count corrupted ones."""
    guard = CorruptionGuard(ApiLogStore(settings.log_path))
    flagged = []
    corrupted = guard.reprocess(lambda entry, repaired: flagged.append(entry.id), limit=limit)
    emit_success({"corrupted": corrupted, "log_ids": flagged})


@logs.command("purge")
@click.option("--days", type=int, default=30, show_default=True, help="Keep records newer than this.")
@click.pass_obj
def purge_cmd(settings: Settings, days: int) -> None:
    """Delete audit records older than --days."""
    removed = ApiLogStore(settings.log_path).purge(days)
    emit_success({"removed": removed})
