"""Multi-phase business-case workflow with per-phase fallbacks."""

from business_case_ai.core.workflow.analyst import CaseAnalyst
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
from business_case_ai.core.workflow.history import WorkflowHistory
from business_case_ai.core.workflow.models import CaseInputs, RunResult, RunState
from business_case_ai.core.workflow.orchestrator import (
    PHASE_PROGRESS,
    WorkflowOrchestrator,
    build_orchestrator,
)
from business_case_ai.core.workflow.steps import PHASE_ORDER, Phase, StepStatus, WorkflowStep
from business_case_ai.core.workflow.tracker import WorkflowTracker

__all__ = [
    "BasicRoiCalculator",
    "CaseAnalyst",
    "CaseInputs",
    "CategoryRecommender",
    "ContextRetriever",
    "DataStructurer",
    "DefaultDataStructurer",
    "NullContextRetriever",
    "PHASE_ORDER",
    "PHASE_PROGRESS",
    "Phase",
    "RoiCalculator",
    "RuleBasedRecommender",
    "RunResult",
    "RunState",
    "StepStatus",
    "WorkflowHistory",
    "WorkflowOrchestrator",
    "WorkflowStep",
    "WorkflowTracker",
    "build_orchestrator",
]
