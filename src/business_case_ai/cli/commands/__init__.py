"""CLI command groups."""

from business_case_ai.cli.commands.analyze import analyze_cmd
from business_case_ai.cli.commands.cache import cache
from business_case_ai.cli.commands.job import job
from business_case_ai.cli.commands.logs import logs

__all__ = [
    "analyze_cmd",
    "cache",
    "job",
    "logs",
]
