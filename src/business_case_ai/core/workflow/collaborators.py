"""Interfaces for the non-LLM collaborators of a run, with simple defaults.

ROI modelling, category rules, retrieval and report structuring live outside
this package. The orchestrator only relies on the protocols below; the
default implementations keep a run self-contained when nothing richer is
plugged in.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from business_case_ai.core.workflow.models import CaseInputs

LABOR_COST_PER_HOUR = 100.0
BANK_FEE_BASELINE = 15000.0

# Labour-hour reduction per scenario
SCENARIO_EFFICIENCY = {
    "conservative": 0.20,
    "base": 0.30,
    "optimistic": 0.40,
}

CATEGORIES: Dict[str, Dict[str, str]] = {
    "cash_tools": {
        "name": "Cash Management Tools",
        "description": "Basic cash visibility and forecasting tools",
    },
    "tms_lite": {
        "name": "Treasury Management System (Lite)",
        "description": "Mid-tier treasury platform",
    },
    "trms": {
        "name": "Treasury & Risk Management System",
        "description": "Enterprise treasury platform",
    },
}


@runtime_checkable
class RoiCalculator(Protocol):
    def calculate(self, inputs: CaseInputs) -> Dict[str, Any]: ...


@runtime_checkable
class CategoryRecommender(Protocol):
    def recommend(self, inputs: CaseInputs, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]: ...


@runtime_checkable
class ContextRetriever(Protocol):
    def search(self, query: str, top_k: int = 3) -> List[Dict[str, Any]]: ...


@runtime_checkable
class DataStructurer(Protocol):
    def structure(self, inputs: CaseInputs, phases: Dict[str, Any]) -> Dict[str, Any]: ...


class BasicRoiCalculator:
    """Labour and bank-fee savings for three efficiency scenarios."""

    def __init__(
        self,
        labor_cost_per_hour: float = LABOR_COST_PER_HOUR,
        bank_fee_baseline: float = BANK_FEE_BASELINE,
    ) -> None:
        self.labor_cost_per_hour = labor_cost_per_hour
        self.bank_fee_baseline = bank_fee_baseline

    def calculate(self, inputs: CaseInputs) -> Dict[str, Any]:
        weekly_hours = inputs.hours_reconciliation + inputs.hours_cash_positioning
        labor_cost = weekly_hours * 52 * self.labor_cost_per_hour
        bank_fees = inputs.num_banks * self.bank_fee_baseline

        scenarios = {}
        for name, efficiency in SCENARIO_EFFICIENCY.items():
            labor_savings = labor_cost * efficiency
            fee_savings = bank_fees * efficiency / 4
            scenarios[name] = {
                "labor_savings": round(labor_savings, 2),
                "fee_savings": round(fee_savings, 2),
                "total_annual_benefit": round(labor_savings + fee_savings, 2),
            }
        return {
            "current_annual_costs": {
                "labor_cost": round(labor_cost, 2),
                "bank_fees": round(bank_fees, 2),
                "total": round(labor_cost + bank_fees, 2),
            },
            "scenarios": scenarios,
        }


class RuleBasedRecommender:
    """Picks a solution category from the revenue band alone.

    Enriched context, when supplied, may override the size rule through its
    ``maturity_level``.
    """

    confidence = 0.75

    def recommend(self, inputs: CaseInputs, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        size = inputs.company_size
        recommended = "tms_lite"
        if "<$50M" in size:
            recommended = "cash_tools"
        elif ">$2B" in size:
            recommended = "trms"

        reasoning = f"Based on company size: {size}"
        maturity = ((context or {}).get("company_profile") or {}).get("maturity_level")
        if maturity == "optimized" and recommended != "trms":
            recommended = "trms"
            reasoning += "; optimized treasury maturity"
        elif maturity == "basic" and recommended == "trms":
            recommended = "tms_lite"
            reasoning += "; basic treasury maturity"

        return {
            "recommended": recommended,
            "category_info": dict(CATEGORIES[recommended]),
            "confidence": self.confidence,
            "reasoning": reasoning,
        }


class NullContextRetriever:
    def search(self, query: str, top_k: int = 3) -> List[Dict[str, Any]]:
        return []


class DefaultDataStructurer:
    """Assembles phase results into the final report payload."""

    def structure(self, inputs: CaseInputs, phases: Dict[str, Any]) -> Dict[str, Any]:
        analysis = phases.get("final_synthesis") or {}
        enrichment = phases.get("enrichment") or {}
        return {
            "company_name": inputs.company_name,
            "company_profile": enrichment.get("company_profile", {}),
            "industry_context": enrichment.get("industry_context", {}),
            "roi": phases.get("roi_calculation") or {},
            "recommendation": phases.get("recommendation") or {},
            "market_context": phases.get("market_context_analysis") or [],
            "executive_summary": analysis.get("executive_summary", {}),
            "financial_analysis": analysis.get("financial_analysis", {}),
            "analysis": analysis,
        }
