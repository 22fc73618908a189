"""
Main CLI entry point for aztf-bridge.

This module provides the command-line interface for importing existing
Azure resources into Terraform state.
"""

from pathlib import Path

import click
from dotenv import load_dotenv

from aztf_bridge import __version__
from aztf_bridge.cli.commands import import_cmds
from aztf_bridge.cli.commands import mapping as mapping_commands
from aztf_bridge.cli.context import BridgeContext
from aztf_bridge.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="aztf-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="AZTF_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Set console logging level (file logging stays at DEBUG)",
    envvar="AZTF_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file path (default: logs/aztf-bridge.log)",
    envvar="AZTF_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str,
    log_file: Path | None,
) -> None:
    """aztf-bridge - Import existing Azure resources into Terraform state.

    Run inside an initialised Terraform working directory (or point
    --output-dir at one). Resource types are confirmed interactively unless
    --non-interactive is given.

    Examples:

        # Import one resource
        aztf-bridge resource /subscriptions/.../resourceGroups/rg

        # Import a resource group without prompting
        aztf-bridge resource-group my-rg --non-interactive

        # Resume an interrupted run
        aztf-bridge resource-group my-rg -n --resume

        # Inspect the resulting mapping
        aztf-bridge mapping show aztfexportResourceMapping.json
    """
    effective_log_file = str(log_file) if log_file else "logs/aztf-bridge.log"
    Path(effective_log_file).parent.mkdir(parents=True, exist_ok=True)

    configure_logging(level=log_level, log_file=effective_log_file)

    ctx.obj = BridgeContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )

    logger.debug(
        "cli_initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


cli.add_command(import_cmds.resource_cmd)
cli.add_command(import_cmds.resource_group_cmd)
cli.add_command(import_cmds.query_cmd)
cli.add_command(import_cmds.mapping_file_cmd)
cli.add_command(mapping_commands.mapping)


def main() -> int:
    """Main entry point for CLI."""
    try:
        # without standalone mode click returns the code of Exit instead of raising
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 130
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1
