"""Workflow step records.

A step is created when its phase starts, mutated while it runs, and frozen
once it reaches ``completed`` or ``failed``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from business_case_ai.core.errors import StepStateError


class Phase(str, Enum):
    """Analysis phases, in execution order."""

    ENRICHMENT = "enrichment"
    ROI_CALCULATION = "roi_calculation"
    RECOMMENDATION = "recommendation"
    MARKET_CONTEXT_ANALYSIS = "market_context_analysis"
    FINAL_SYNTHESIS = "final_synthesis"
    DATA_STRUCTURING = "data_structuring"


PHASE_ORDER = tuple(Phase)

# Phases whose primary result comes from the LLM
AI_PHASES = frozenset({Phase.ENRICHMENT, Phase.FINAL_SYNTHESIS})


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED})


@dataclass
class WorkflowStep:
    """One phase's execution record."""

    name: str
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    result: Any = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    is_ai_step: bool = False
    fallback_used: bool = False
    cached: bool = False

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES

    @property
    def duration(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return round(self.completed_at - self.started_at, 4)

    def _ensure_mutable(self) -> None:
        if self.is_finished:
            raise StepStateError(f"Step '{self.name}' is already {self.status.value}")

    def start(self) -> None:
        if self.status is not StepStatus.PENDING:
            raise StepStateError(f"Step '{self.name}' cannot start from {self.status.value}")
        self.status = StepStatus.RUNNING
        self.started_at = time.time()

    def complete(self, result: Any = None, *, fallback_used: bool = False, cached: bool = False) -> None:
        self._ensure_mutable()
        self.result = result
        self.fallback_used = fallback_used
        self.cached = cached
        self.status = StepStatus.COMPLETED
        self.completed_at = time.time()

    def fail(self, message: str) -> None:
        self._ensure_mutable()
        self.errors.append(message)
        self.status = StepStatus.FAILED
        self.completed_at = time.time()

    def add_warning(self, message: str) -> None:
        self._ensure_mutable()
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        self._ensure_mutable()
        self.errors.append(message)

    def to_dict(self, include_result: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration": self.duration,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "is_ai_step": self.is_ai_step,
            "fallback_used": self.fallback_used,
            "cached": self.cached,
        }
        if include_result:
            data["result"] = self.result
        return data
