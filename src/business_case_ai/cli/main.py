"""Entry point for the ``business-case-ai`` command."""

from typing import Optional

import click

from business_case_ai import __version__
from business_case_ai.cli.commands import analyze_cmd, cache, job, logs
from business_case_ai.config import Settings, set_settings


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    envvar="BCAI_CONFIG",
    help="Path to a business-case-ai.toml file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
@click.version_option(__version__, prog_name="business-case-ai")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: bool) -> None:
    """Generate treasury technology business cases."""
    settings = Settings.from_env(config_file)
    if verbose:
        settings.log_level = "DEBUG"
    settings.setup_logging()
    set_settings(settings)
    ctx.obj = settings


cli.add_command(analyze_cmd)
cli.add_command(job)
cli.add_command(logs)
cli.add_command(cache)


if __name__ == "__main__":
    cli()
