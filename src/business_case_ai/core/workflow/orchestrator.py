"""
End-to-end business-case runs.

A run executes six phases in a fixed order. AI phases degrade to a
deterministic fallback (with a warning) when the provider fails or AI is
switched off, so a run only fails on configuration problems, invalid input,
or an unexpected error.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from ulid import ULID

from business_case_ai.config.decorators import timed
from business_case_ai.config.parsing import _parse_bool
from business_case_ai.config.settings import Settings
from business_case_ai.core.errors import (
    GENERIC_FAILURE_MESSAGE,
    BusinessCaseError,
    ConfigurationError,
    HTTPStatusError,
    ParseError,
    TransportError,
    ValidationError,
)
from business_case_ai.core.integrity.log_store import ApiLogStore
from business_case_ai.core.llm.request_builder import RequestBuilder
from business_case_ai.core.llm.transport import TransportClient
from business_case_ai.core.research_cache import ResearchCache
from business_case_ai.core.workflow.analyst import CaseAnalyst, validate_enrichment
from business_case_ai.core.workflow.collaborators import (
    BasicRoiCalculator,
    CategoryRecommender,
    ContextRetriever,
    DataStructurer,
    DefaultDataStructurer,
    NullContextRetriever,
    RoiCalculator,
    RuleBasedRecommender,
)
from business_case_ai.core.workflow.fallbacks import (
    context_query,
    fallback_analysis,
    fallback_market_context,
    fallback_profile,
)
from business_case_ai.core.workflow.history import WorkflowHistory
from business_case_ai.core.workflow.models import CaseInputs, RunResult, RunState
from business_case_ai.core.workflow.steps import AI_PHASES, Phase
from business_case_ai.core.workflow.tracker import WorkflowTracker

logger = logging.getLogger(__name__)

# Errors that a phase absorbs by switching to its fallback
PHASE_RECOVERABLE_ERRORS = (TransportError, HTTPStatusError, ParseError)

# Progress percent reported when each phase starts
PHASE_PROGRESS: Dict[Phase, int] = {
    Phase.ENRICHMENT: 30,
    Phase.ROI_CALCULATION: 50,
    Phase.RECOMMENDATION: 70,
    Phase.MARKET_CONTEXT_ANALYSIS: 85,
    Phase.FINAL_SYNTHESIS: 90,
    Phase.DATA_STRUCTURING: 95,
}

MARKET_CONTEXT_TOP_K = 5
AI_DISABLED_MESSAGE = "AI analysis disabled."

ProgressCallback = Callable[[str, int], None]


class WorkflowOrchestrator:
    """Runs the analysis phases for one set of inputs at a time.

    Example:
        orchestrator = build_orchestrator(Settings.from_env())
        result = orchestrator.run({"company_name": "Acme", "industry": "Retail"})
        if result.success:
            report = result.data
    """

    def __init__(
        self,
        settings: Settings,
        *,
        analyst: CaseAnalyst,
        cache: Optional[ResearchCache] = None,
        history: Optional[WorkflowHistory] = None,
        roi_calculator: Optional[RoiCalculator] = None,
        recommender: Optional[CategoryRecommender] = None,
        retriever: Optional[ContextRetriever] = None,
        structurer: Optional[DataStructurer] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.settings = settings
        self.analyst = analyst
        self.cache = cache
        self.history = history
        self.roi_calculator = roi_calculator or BasicRoiCalculator()
        self.recommender = recommender or RuleBasedRecommender()
        self.retriever = retriever or NullContextRetriever()
        self.structurer = structurer or DefaultDataStructurer()
        self.progress = progress

    @property
    def ai_enabled(self) -> bool:
        return _parse_bool(self.settings.get("ai_enabled", True))

    @timed("workflow.run")
    def run(self, inputs: Union[CaseInputs, Mapping[str, Any]]) -> RunResult:
        """Execute every phase and return the outcome.

        Never raises; failures are reported through ``RunResult.error`` with
        a user-safe message, and the step trail is stored in the history
        either way.
        """
        run_id = str(ULID())
        tracker = WorkflowTracker()
        tracker.attach(self.analyst.transport.hooks)
        if isinstance(inputs, Mapping):
            company = str(inputs.get("company_name") or "")
        else:
            company = getattr(inputs, "company_name", "")

        try:
            case = self._coerce_inputs(inputs)
            data = self._execute(case, tracker)
            result = RunResult(
                success=True,
                run_id=run_id,
                state=RunState.RUN_SUCCEEDED,
                data=data,
                warnings=list(tracker.warnings),
            )
        except (ConfigurationError, ValidationError) as exc:
            logger.error("Run %s aborted: %s", run_id, exc)
            tracker.add_error(exc.code or "configuration_error", exc.message)
            tracker.fail_step(exc.message)
            result = RunResult(
                success=False,
                run_id=run_id,
                state=RunState.RUN_FAILED,
                warnings=list(tracker.warnings),
                error=exc.user_message,
            )
        except Exception as exc:
            logger.exception("Run %s failed unexpectedly", run_id)
            tracker.add_error("unexpected_error", f"{type(exc).__name__}: {exc}")
            tracker.fail_step(str(exc))
            result = RunResult(
                success=False,
                run_id=run_id,
                state=RunState.RUN_FAILED,
                warnings=list(tracker.warnings),
                error=GENERIC_FAILURE_MESSAGE,
            )
        finally:
            tracker.detach()

        result.debug = tracker.debug_info()
        self._store_history(run_id, company, result, tracker)
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _execute(self, case: CaseInputs, tracker: WorkflowTracker) -> Dict[str, Any]:
        phases: Dict[str, Any] = {}

        profile = self._cached_ai_phase(
            tracker,
            case,
            Phase.ENRICHMENT,
            produce=lambda: self.analyst.enrich_company(case),
            fallback=lambda: fallback_profile(case),
            warning_prefix="enrichment",
            validate=validate_enrichment,
        )
        phases[Phase.ENRICHMENT.value] = profile

        self._start(tracker, Phase.ROI_CALCULATION)
        roi = self.roi_calculator.calculate(case)
        tracker.complete_step(roi)
        phases[Phase.ROI_CALCULATION.value] = roi

        phases[Phase.RECOMMENDATION.value] = self._recommend(tracker, case, profile)

        query = context_query(case, profile)
        market_context = self._cached_ai_phase(
            tracker,
            case,
            Phase.MARKET_CONTEXT_ANALYSIS,
            produce=lambda: self.retriever.search(query, MARKET_CONTEXT_TOP_K),
            fallback=fallback_market_context,
            warning_prefix="market_context",
        )
        phases[Phase.MARKET_CONTEXT_ANALYSIS.value] = market_context

        phases[Phase.FINAL_SYNTHESIS.value] = self._cached_ai_phase(
            tracker,
            case,
            Phase.FINAL_SYNTHESIS,
            produce=lambda: self.analyst.synthesize(
                case, profile, roi, phases[Phase.RECOMMENDATION.value], market_context
            ),
            fallback=fallback_analysis,
            warning_prefix="final_synthesis",
        )

        self._start(tracker, Phase.DATA_STRUCTURING)
        report = self.structurer.structure(case, phases)
        tracker.complete_step(report)
        return report

    def _start(self, tracker: WorkflowTracker, phase: Phase) -> None:
        tracker.start_step(phase.value, is_ai_step=phase in AI_PHASES)
        if self.progress is not None:
            self.progress(phase.value, PHASE_PROGRESS[phase])

    def _cached_ai_phase(
        self,
        tracker: WorkflowTracker,
        case: CaseInputs,
        phase: Phase,
        *,
        produce: Callable[[], Any],
        fallback: Callable[[], Any],
        warning_prefix: str,
        validate: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """Run a phase that depends on AI: disabled, cached, live, or fallback.

        A cached entry rejected by *validate* is invalidated and the phase
        runs live.
        """
        self._start(tracker, phase)

        if not self.ai_enabled:
            result = fallback()
            tracker.add_warning(f"{warning_prefix}_disabled", AI_DISABLED_MESSAGE)
            tracker.complete_step(result, fallback_used=True)
            return result

        if self.cache is not None:
            cached = self.cache.get(case.company_name, case.industry, phase.value)
            if cached is not None and validate is not None:
                try:
                    cached = validate(cached)
                except ParseError as exc:
                    logger.warning("Discarding cached %s entry: %s", phase.value, exc)
                    self.cache.invalidate(case.company_name, case.industry, phase.value)
                    cached = None
            if cached is not None:
                tracker.complete_step(cached, cached=True)
                return cached

        try:
            if phase in AI_PHASES:
                tracker.record_ai_call()
            result = produce()
        except PHASE_RECOVERABLE_ERRORS as exc:
            logger.warning("Phase %s fell back after %s: %s", phase.value, type(exc).__name__, exc)
            result = fallback()
            tracker.add_warning(f"{warning_prefix}_failed", exc.message)
            tracker.complete_step(result, fallback_used=True)
            return result

        if self.cache is not None:
            self.cache.set(case.company_name, case.industry, phase.value, result)
        tracker.complete_step(result)
        return result

    def _recommend(self, tracker: WorkflowTracker, case: CaseInputs, profile: Dict[str, Any]) -> Dict[str, Any]:
        self._start(tracker, Phase.RECOMMENDATION)
        context = profile if self.ai_enabled else None
        try:
            recommendation = self.recommender.recommend(case, context)
        except (ConfigurationError, ValidationError):
            raise
        except Exception as exc:
            logger.warning("Category recommender failed: %s", exc)
            recommendation = RuleBasedRecommender().recommend(case, None)
            tracker.add_warning("recommendation_failed", str(exc))
            tracker.complete_step(recommendation, fallback_used=True)
            return recommendation
        tracker.complete_step(recommendation)
        return recommendation

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _coerce_inputs(self, inputs: Union[CaseInputs, Mapping[str, Any]]) -> CaseInputs:
        if isinstance(inputs, CaseInputs):
            return inputs
        if not isinstance(inputs, Mapping):
            raise ValidationError(
                f"Invalid inputs: expected a mapping, got {type(inputs).__name__}",
                code="invalid_inputs",
            )
        try:
            return CaseInputs.model_validate(dict(inputs))
        except PydanticValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
            raise ValidationError(f"Invalid inputs: {fields}", code="invalid_inputs") from exc

    def _store_history(self, run_id: str, company: str, result: RunResult, tracker: WorkflowTracker) -> None:
        if self.history is None:
            return
        entry = {
            "run_id": run_id,
            "company_name": company,
            "state": result.state.value,
            "success": result.success,
            "error": result.error,
            "started_at": tracker.started_at,
            "completed_at": time.time(),
            "warnings_count": len(tracker.warnings),
            "errors_count": len(tracker.errors),
            "steps": [step.to_dict(include_result=False) for step in tracker.steps],
        }
        try:
            self.history.append(entry)
        except (OSError, BusinessCaseError) as exc:
            logger.warning("Failed to store workflow history for run %s: %s", run_id, exc)


def build_orchestrator(
    settings: Settings,
    *,
    progress: Optional[ProgressCallback] = None,
    **overrides: Any,
) -> WorkflowOrchestrator:
    """Wire an orchestrator with default collaborators from *settings*.

    The transport's calls are recorded in the audit log under
    ``settings.data_dir``. Keyword *overrides* replace any constructor
    argument (e.g. ``analyst=``, ``retriever=``).
    """
    if "analyst" not in overrides:
        transport = TransportClient(settings)
        ApiLogStore(settings.log_path).attach(transport.hooks)
        overrides["analyst"] = CaseAnalyst(transport, RequestBuilder(settings))
    overrides.setdefault("cache", ResearchCache(settings.cache_dir, settings.cache_ttl))
    overrides.setdefault("history", WorkflowHistory(settings.history_path, settings.history_limit))
    return WorkflowOrchestrator(settings, progress=progress, **overrides)

