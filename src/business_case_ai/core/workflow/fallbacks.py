"""Deterministic substitutes for phase results when AI is unavailable."""

from typing import Any, Dict, List

from business_case_ai.core.workflow.models import CaseInputs

FALLBACK_ENRICHMENT_CONFIDENCE = 0.6
FALLBACK_ANALYSIS_CONFIDENCE = 0.5


def fallback_profile(inputs: CaseInputs) -> Dict[str, Any]:
    """Company profile built only from user-supplied fields."""
    return {
        "company_profile": {
            "name": inputs.company_name,
            "size": inputs.company_size,
            "industry": inputs.industry,
            "maturity_level": "basic",
            "key_challenges": list(inputs.pain_points),
            "strategic_priorities": [inputs.business_objective] if inputs.business_objective else [],
        },
        "industry_context": {
            "sector_trends": "General industry modernization trends",
            "competitive_pressure": "moderate",
            "regulatory_environment": "standard compliance requirements",
        },
        "enrichment_status": "fallback_used",
        "enrichment_confidence": FALLBACK_ENRICHMENT_CONFIDENCE,
    }


def fallback_market_context() -> List[Dict[str, Any]]:
    return []


def fallback_analysis() -> Dict[str, Any]:
    return {
        "executive_summary": {
            "strategic_positioning": "",
            "key_value_drivers": [],
            "executive_recommendation": "",
            "confidence_level": FALLBACK_ANALYSIS_CONFIDENCE,
        },
        "financial_analysis": {},
        "analysis_status": "fallback_used",
    }


def context_query(inputs: CaseInputs, profile: Dict[str, Any]) -> str:
    """Search query for market context, from inputs plus enriched maturity."""
    company = profile.get("company_profile") if isinstance(profile, dict) else None
    maturity = company.get("maturity_level") if isinstance(company, dict) else None
    parts = [
        inputs.company_name,
        inputs.industry,
        maturity,
        " ".join(str(point) for point in inputs.pain_points),
        inputs.business_objective,
    ]
    return " ".join(str(part) for part in parts if part).strip()
