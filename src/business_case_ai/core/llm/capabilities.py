"""Model-family capabilities and output-token budgeting."""

import math
import re
from typing import Dict, Optional

MAX_OUTPUT_TOKENS_CEILING = 128000

# Families that reject a ``temperature`` parameter
NO_TEMPERATURE_FAMILIES = frozenset({"gpt-4.1", "gpt-4.1-mini", "gpt-5", "gpt-5-mini"})

# Families that accept ``reasoning.effort`` and ``text.verbosity``
_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")

# Target length in words for each report section
REPORT_WORD_TARGETS: Dict[str, int] = {
    "business_case": 600,
    "industry_commentary": 60,
    "company_overview": 400,
    "industry_overview": 400,
    "treasury_tech_overview": 400,
    "real_treasury_overview": 400,
    "category_recommendation": 200,
    "benefits_estimate": 200,
    "comprehensive_business_case": 2000,
    "competitive_context": 200,
    "industry_analysis": 400,
    "tech_research": 400,
}
DEFAULT_REPORT_WORDS = 800

_DATED_SUFFIX = re.compile(r"-\d{4}-\d{2}-\d{2}$")


def model_family(model: str) -> str:
    """Strip a dated snapshot suffix: ``gpt-5-mini-2025-08-07`` -> ``gpt-5-mini``."""
    return _DATED_SUFFIX.sub("", (model or "").strip().lower())


def supports_temperature(model: str) -> bool:
    return model_family(model) not in NO_TEMPERATURE_FAMILIES


def supports_reasoning(model: str) -> bool:
    family = model_family(model)
    return family.startswith(_REASONING_PREFIXES) and "chat" not in family


def clamp_tokens(tokens: int, min_tokens: int = 1, max_tokens: Optional[int] = None) -> int:
    """Clamp an output-token count to ``[min_tokens, max_tokens]``.

    ``max_tokens`` defaults to, and never exceeds, 128000. The floor wins when
    the two conflict.
    """
    ceiling = MAX_OUTPUT_TOKENS_CEILING
    if max_tokens:
        ceiling = min(ceiling, int(max_tokens))
    return max(max(1, min_tokens), min(ceiling, int(tokens)))


def estimate_tokens(words: int, min_tokens: int = 1, max_tokens: Optional[int] = None) -> int:
    """Estimate output tokens needed for a word count (1.5 tokens per word)."""
    return clamp_tokens(math.ceil(max(0, words) * 1.5), min_tokens, max_tokens)


def tokens_for_report(report_type: str, min_tokens: int = 1, max_tokens: Optional[int] = None) -> int:
    """Token budget for a named report section."""
    words = REPORT_WORD_TARGETS.get(report_type, DEFAULT_REPORT_WORDS)
    return estimate_tokens(words, min_tokens, max_tokens)
