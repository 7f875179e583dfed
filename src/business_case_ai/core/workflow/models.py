"""Typed inputs and results for business-case runs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class CaseInputs(BaseModel):
    """User-supplied facts about the company being analyzed.

    Form validation happens upstream; this model only normalizes types.
    """

    company_name: str = Field(..., min_length=1, description="Company being analyzed")
    company_size: str = Field("", description="Revenue band, e.g. '$50M-$500M'")
    industry: str = Field("", description="Industry or sector")
    job_title: str = Field("", description="Role of the person requesting the case")
    pain_points: List[str] = Field(default_factory=list, description="Selected treasury pain points")
    business_objective: str = Field("", description="Primary objective for the initiative")
    implementation_timeline: str = Field("", description="Desired implementation window")
    budget_range: str = Field("", description="Budget band")
    hours_reconciliation: float = Field(0.0, ge=0, description="Weekly hours spent on reconciliation")
    hours_cash_positioning: float = Field(0.0, ge=0, description="Weekly hours spent on cash positioning")
    num_banks: int = Field(0, ge=0, description="Number of banking relationships")
    ftes: float = Field(0.0, ge=0, description="Treasury headcount")

    @field_validator("company_name", "company_size", "industry", "business_objective", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("pain_points", mode="before")
    @classmethod
    def _normalize_pain_points(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list):
            return [str(v).strip() for v in value if str(v).strip()]
        return value


class RunState(str, Enum):
    RUN_SUCCEEDED = "run_succeeded"
    RUN_FAILED = "run_failed"


@dataclass
class RunResult:
    """Outcome of one end-to-end analysis run.

    ``error`` is always a user-safe message; internal detail lives in
    ``debug``.
    """

    success: bool
    run_id: str
    state: RunState
    data: Dict[str, Any] = field(default_factory=dict)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    debug: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["state"] = self.state.value
        return result
