"""Step-by-step execution trail for one analysis run."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from business_case_ai.core.workflow.steps import WorkflowStep

if TYPE_CHECKING:
    from business_case_ai.core.llm.hooks import TransportHooks
    from business_case_ai.core.llm.models import LLMRequest

logger = logging.getLogger(__name__)

# Prompt text kept per captured request
_PROMPT_PREVIEW_CHARS = 4000


class WorkflowTracker:
    """Records steps, warnings, errors and prompts for one run.

    Warnings and errors are attributed to the running step, or to the most
    recent step when none is running. They are always recorded at run level;
    a finished step's own lists are left untouched.
    """

    def __init__(self) -> None:
        self.started_at = time.time()
        self.steps: List[WorkflowStep] = []
        self.current_step: Optional[WorkflowStep] = None
        self.warnings: List[Dict[str, Any]] = []
        self.errors: List[Dict[str, Any]] = []
        self.prompts: List[Dict[str, Any]] = []
        self.ai_calls = 0
        self._hooks: Optional["TransportHooks"] = None

    def start_step(self, name: str, *, is_ai_step: bool = False) -> WorkflowStep:
        step = WorkflowStep(name=name, is_ai_step=is_ai_step)
        step.start()
        self.steps.append(step)
        self.current_step = step
        logger.debug("Workflow step started: %s", name)
        return step

    def complete_step(self, result: Any = None, *, fallback_used: bool = False, cached: bool = False) -> None:
        step = self.current_step
        if step is None:
            return
        step.complete(result, fallback_used=fallback_used, cached=cached)
        self.current_step = None
        logger.debug("Workflow step completed: %s (%.3fs)", step.name, step.duration or 0.0)

    def fail_step(self, message: str) -> None:
        step = self.current_step
        if step is None:
            return
        step.fail(message)
        self.current_step = None

    def record_ai_call(self) -> None:
        self.ai_calls += 1

    def _target_step(self) -> Optional[WorkflowStep]:
        if self.current_step is not None:
            return self.current_step
        return self.steps[-1] if self.steps else None

    def _entry(self, code: str, message: str) -> Dict[str, Any]:
        step = self._target_step()
        return {
            "code": code,
            "message": message,
            "step": step.name if step else None,
            "timestamp": time.time(),
        }

    def add_warning(self, code: str, message: str) -> None:
        entry = self._entry(code, message)
        self.warnings.append(entry)
        if self.current_step is not None:
            self.current_step.add_warning(f"{code}: {message}")
        logger.warning("Workflow warning [%s] %s", code, message)

    def add_error(self, code: str, message: str) -> None:
        entry = self._entry(code, message)
        self.errors.append(entry)
        if self.current_step is not None:
            self.current_step.add_error(f"{code}: {message}")

    def add_prompt(self, request: "LLMRequest", attempt: int = 1) -> None:
        step = self._target_step()
        self.prompts.append(
            {
                "step": step.name if step else None,
                "attempt": attempt,
                "model": request.model,
                "max_output_tokens": request.max_output_tokens,
                "instructions": request.instructions[:_PROMPT_PREVIEW_CHARS],
                "input": request.input[:_PROMPT_PREVIEW_CHARS],
                "timestamp": time.time(),
            }
        )

    def attach(self, hooks: "TransportHooks") -> None:
        """Capture every prompt the transport sends while attached."""
        self.detach()
        hooks.on_request_sent(self.add_prompt)
        self._hooks = hooks

    def detach(self) -> None:
        if self._hooks is not None:
            from business_case_ai.core.llm.hooks import TransportEvent

            self._hooks.unsubscribe(TransportEvent.REQUEST_SENT, self.add_prompt)
            self._hooks = None

    def debug_info(self, include_results: bool = False) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "total_steps": len(self.steps),
            "total_duration": round(time.time() - self.started_at, 4),
            "ai_calls": self.ai_calls,
            "warnings_count": len(self.warnings),
            "errors_count": len(self.errors),
            "steps": [step.to_dict(include_result=include_results) for step in self.steps],
            "prompts": list(self.prompts),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }
