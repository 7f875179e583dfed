"""
Background analysis jobs with pollable status records.

Each job has one JSON status file. Every update replaces the whole record
atomically (temp file + fsync + rename under a file lock), so a poller reads
either the previous or the next state, never a torn or merged one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Mapping, Optional

from filelock import FileLock
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from ulid import ULID

from business_case_ai.core.errors import GENERIC_FAILURE_MESSAGE, JobNotFoundError

logger = logging.getLogger(__name__)

LOCK_ACQUISITION_TIMEOUT = 5
DEFAULT_MAX_AGE = 86400  # one day

JobState = Literal["queued", "processing", "completed", "error"]

# External status names; queued and processing are not distinguished
_PUBLIC_STATUS = {
    "queued": "pending",
    "processing": "pending",
    "completed": "completed",
    "error": "error",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(BaseModel):
    """Persisted state of one background job."""

    job_id: str
    status: JobState = "queued"
    step: Optional[str] = None
    message: Optional[str] = None
    percent: Optional[int] = Field(default=None, ge=0, le=100)
    result: Optional[Dict[str, Any]] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    def public_view(self) -> Dict[str, Any]:
        view: Dict[str, Any] = {"status": _PUBLIC_STATUS[self.status]}
        for key in ("step", "message", "percent", "result"):
            value = getattr(self, key)
            if value is not None:
                view[key] = value
        return view


class JobStore:
    """One JSON file per job under ``storage_path``."""

    def __init__(self, storage_path: Path) -> None:
        self.storage_path = Path(storage_path)

    def _get_job_path(self, job_id: str) -> Path:
        return self.storage_path / f"{job_id}.json"

    def _get_lock_path(self, job_id: str) -> Path:
        return self.storage_path / f".{job_id}.lock"

    def save(self, status: JobStatus) -> None:
        """Replace the stored record for ``status.job_id``.

        Raises:
            Timeout: If lock acquisition times out
        """
        self.storage_path.mkdir(parents=True, exist_ok=True)
        job_path = self._get_job_path(status.job_id)

        with FileLock(self._get_lock_path(status.job_id), timeout=LOCK_ACQUISITION_TIMEOUT):
            data = status.model_dump(mode="json")
            fd, temp_path = tempfile.mkstemp(
                dir=self.storage_path,
                prefix=f".{status.job_id}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, default=str)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, job_path)
                logger.debug("Saved job %s (%s)", status.job_id, status.status)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

    def update(self, job_id: str, status: JobState, **fields: Any) -> JobStatus:
        record = JobStatus(job_id=job_id, status=status, **fields)
        self.save(record)
        return record

    def load(self, job_id: str) -> Optional[JobStatus]:
        job_path = self._get_job_path(job_id)
        if not job_path.exists():
            return None
        try:
            with open(job_path, "r", encoding="utf-8") as f:
                return JobStatus.model_validate(json.load(f))
        except (json.JSONDecodeError, OSError, PydanticValidationError) as exc:
            logger.warning("Unreadable job record %s: %s", job_path, exc)
            return None

    def get_status(self, job_id: str) -> Dict[str, Any]:
        """Public status view for polling clients.

        Raises:
            JobNotFoundError: If no readable record exists
        """
        record = self.load(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record.public_view()

    def cleanup(self, max_age: int = DEFAULT_MAX_AGE) -> int:
        """Delete failed jobs and jobs not updated within *max_age* seconds.

        Returns:
            Number of job records removed
        """
        if not self.storage_path.exists():
            return 0
        cutoff = _utcnow() - timedelta(seconds=max_age)
        removed = 0
        for job_path in self.storage_path.glob("*.json"):
            record = self.load(job_path.stem)
            if record is not None and record.status != "error" and record.updated_at >= cutoff:
                continue
            job_path.unlink(missing_ok=True)
            self._get_lock_path(job_path.stem).unlink(missing_ok=True)
            removed += 1
        if removed:
            logger.info("Removed %d job records", removed)
        return removed


class JobRunner:
    """Runs analyses on daemon threads and reports progress to a ``JobStore``.

    ``orchestrator_factory`` receives a progress callback ``(step, percent)``
    and returns an object with a ``run(inputs)`` method returning a
    ``RunResult``.
    """

    def __init__(self, orchestrator_factory: Callable[..., Any], store: JobStore) -> None:
        self.orchestrator_factory = orchestrator_factory
        self.store = store
        self._threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    def enqueue(self, inputs: Mapping[str, Any]) -> str:
        """Record a queued job and start it in the background.

        Returns:
            The new job's ULID
        """
        job_id = str(ULID())
        self.store.update(job_id, "queued", message="Job queued", percent=0)

        thread = threading.Thread(
            target=self._run,
            args=(job_id, dict(inputs)),
            name=f"business-case-{job_id[-8:]}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads[job_id] = thread
        thread.start()
        logger.info("Enqueued job %s", job_id)
        return job_id

    def wait(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """Join the job's thread; False if it is still running afterwards."""
        with self._threads_lock:
            thread = self._threads.get(job_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self, job_id: str, inputs: Dict[str, Any]) -> None:
        def progress(step: str, percent: int) -> None:
            self.store.update(job_id, "processing", step=step, message=f"Running {step}", percent=percent)

        orchestrator = None
        try:
            self.store.update(job_id, "processing", message="Starting analysis", percent=10)
            orchestrator = self.orchestrator_factory(progress=progress)
            result = orchestrator.run(inputs)
            if result.success:
                self.store.update(
                    job_id,
                    "completed",
                    message="Analysis complete",
                    percent=100,
                    result=result.to_dict(),
                )
            else:
                self.store.update(job_id, "error", message=result.error or GENERIC_FAILURE_MESSAGE)
        except Exception as exc:
            logger.exception("Background job %s failed: %s", job_id, exc)
            try:
                self.store.update(job_id, "error", message=GENERIC_FAILURE_MESSAGE)
            except Exception as store_exc:
                logger.error("Could not record failure of job %s: %s", job_id, store_exc)
        finally:
            _close_transport(orchestrator)
            with self._threads_lock:
                self._threads.pop(job_id, None)


def _close_transport(orchestrator: Any) -> None:
    transport = getattr(getattr(orchestrator, "analyst", None), "transport", None)
    if transport is not None:
        transport.close()
