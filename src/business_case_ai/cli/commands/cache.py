"""Research cache commands."""

import click

from business_case_ai.cli.output import emit_success
from business_case_ai.config import Settings
from business_case_ai.core.research_cache import ResearchCache


@click.group("cache")
def cache() -> None:
    """Manage cached research results."""


@cache.command("invalidate")
@click.argument("company")
@click.argument("industry")
@click.argument("segment")
@click.pass_obj
def invalidate_cmd(settings: Settings, company: str, industry: str, segment: str) -> None:
    """Drop the cached SEGMENT result for COMPANY in INDUSTRY."""
    removed = ResearchCache(settings.cache_dir, settings.cache_ttl).invalidate(company, industry, segment)
    emit_success({"removed": removed})


@cache.command("stats")
@click.pass_obj
def stats_cmd(settings: Settings) -> None:
    """Show entry counts and size of the research cache."""
    emit_success(ResearchCache(settings.cache_dir, settings.cache_ttl).stats())
