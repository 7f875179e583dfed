"""LLM-backed analysis calls used by the AI phases of a run."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from business_case_ai.core.errors import ParseError
from business_case_ai.core.llm.models import ResponseEnvelope
from business_case_ai.core.llm.parser import (
    BUSINESS_CASE_SECTIONS,
    ResponseParser,
    parse_business_case,
    process_response,
)
from business_case_ai.core.llm.request_builder import RequestBuilder
from business_case_ai.core.llm.transport import TransportClient
from business_case_ai.core.workflow.models import CaseInputs

logger = logging.getLogger(__name__)

ENRICHMENT_SYSTEM_PROMPT = """\
You are a senior treasury technology consultant conducting company and industry \
research for treasury technology investment decisions.

Respond ONLY with a single valid JSON object matching the schema provided. Base \
the analysis on the company data given and industry practice, use realistic \
estimates where exact data is unavailable, and keep a professional consulting tone."""

SYNTHESIS_SYSTEM_PROMPT = """\
You are a senior treasury technology consultant writing an executive business \
case for a treasury technology investment.

Respond ONLY with a single valid JSON object containing the sections listed in \
the request. Figures in financial_analysis must be plain numbers."""

_ENRICHMENT_SCHEMA = {
    "company_profile": {
        "enhanced_description": "string",
        "business_model": "string",
        "market_position": "string",
        "maturity_level": "basic|developing|strategic|optimized",
        "key_challenges": ["string"],
        "strategic_priorities": ["string"],
    },
    "industry_context": {
        "sector_trends": "string",
        "competitive_pressure": "low|moderate|high",
        "regulatory_environment": "string",
    },
    "enrichment_confidence": "number between 0 and 1",
}


def _format_list(items: List[str]) -> str:
    return ", ".join(items) if items else "none specified"


def validate_enrichment(profile: Any) -> Dict[str, Any]:
    """Check the shape of an enrichment reply, normalizing list items to strings.

    Absent optional fields are left absent.

    Raises:
        ParseError: If ``company_profile`` is missing or a field has the wrong type
    """
    if not isinstance(profile, dict) or not isinstance(profile.get("company_profile"), dict):
        raise ParseError("Enrichment response is missing company_profile", code="invalid_enrichment")

    company = profile["company_profile"]
    maturity = company.get("maturity_level")
    if maturity is not None and not isinstance(maturity, str):
        raise ParseError("Enrichment maturity_level is not a string", code="invalid_enrichment")
    for field in ("key_challenges", "strategic_priorities"):
        value = company.get(field)
        if value is None:
            continue
        if not isinstance(value, list):
            raise ParseError(f"Enrichment {field} is not a list", code="invalid_enrichment")
        company[field] = [str(item) for item in value if item is not None]

    industry = profile.get("industry_context")
    if industry is not None and not isinstance(industry, dict):
        raise ParseError("Enrichment industry_context is not an object", code="invalid_enrichment")
    return profile


class CaseAnalyst:
    """Builds prompts, calls the transport and parses the model's JSON.

    Every method raises the transport's errors unchanged; an empty envelope
    (trivial or missing output) is reported as ``ParseError``.
    """

    def __init__(
        self,
        transport: TransportClient,
        builder: RequestBuilder,
        parser: Optional[ResponseParser] = None,
    ) -> None:
        self.transport = transport
        self.builder = builder
        self.parser = parser or transport.parser

    def _complete(self, prompt: str, report_type: str, system_prompt: str) -> ResponseEnvelope:
        request = self.builder.build_for_report(prompt, report_type, system_prompt)
        envelope = self.transport.call_with_retry(None, request)
        if envelope.is_empty:
            raise ParseError("Model returned no usable content", code="empty_response")
        if envelope.truncated:
            logger.warning("Model output for %s hit the token ceiling", report_type)
        return envelope

    def enrich_company(self, inputs: CaseInputs) -> Dict[str, Any]:
        """Company profile and industry context for *inputs*."""
        prompt = "\n".join(
            [
                "## Treasury Technology Analysis Request",
                "",
                "### Company Profile",
                f"- Company Name: {inputs.company_name}",
                f"- Industry Sector: {inputs.industry}",
                f"- Revenue Size: {inputs.company_size}",
                f"- Business Objective: {inputs.business_objective}",
                f"- Implementation Timeline: {inputs.implementation_timeline}",
                f"- Budget Range: {inputs.budget_range}",
                "",
                "### Current Treasury Operations",
                f"- Team Size: {inputs.ftes:g} FTEs",
                f"- Weekly Reconciliation Hours: {inputs.hours_reconciliation:g}",
                f"- Weekly Cash Positioning Hours: {inputs.hours_cash_positioning:g}",
                f"- Banking Relationships: {inputs.num_banks}",
                f"- Key Pain Points: {_format_list(inputs.pain_points)}",
                "",
                "### Required JSON Output Schema",
                json.dumps(_ENRICHMENT_SCHEMA, indent=2),
            ]
        )
        envelope = self._complete(prompt, "company_overview", ENRICHMENT_SYSTEM_PROMPT)
        profile = validate_enrichment(process_response(envelope.output_text, self.parser))

        profile["enrichment_status"] = "enriched"
        return profile

    def synthesize(
        self,
        inputs: CaseInputs,
        profile: Dict[str, Any],
        roi: Dict[str, Any],
        recommendation: Dict[str, Any],
        market_context: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Comprehensive business case from every earlier phase's output."""
        context_lines = [
            f"- {item.get('title') or item.get('id') or 'source'}: {item.get('summary') or item.get('content') or ''}"
            for item in market_context
            if isinstance(item, dict)
        ]
        prompt = "\n".join(
            [
                f"## Business Case for {inputs.company_name}",
                "",
                "### Company Intelligence",
                json.dumps(profile, indent=2, default=str),
                "",
                "### ROI Scenarios",
                json.dumps(roi, indent=2, default=str),
                "",
                "### Recommended Solution Category",
                json.dumps(recommendation, indent=2, default=str),
                "",
                "### Market Context",
                "\n".join(context_lines) or "- none available",
                "",
                "### Required Sections",
                ", ".join(BUSINESS_CASE_SECTIONS),
            ]
        )
        envelope = self._complete(prompt, "comprehensive_business_case", SYNTHESIS_SYSTEM_PROMPT)
        return parse_business_case(envelope.output_text, self.parser)
