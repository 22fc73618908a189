"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click
from pydantic import ValidationError

from aztf_bridge.cli.context import BridgeContext
from aztf_bridge.client.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    DiscoveryError,
    EngineError,
    EngineUnavailableError,
    NetworkError,
    StateError,
)
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass BridgeContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: BridgeContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        bridge_ctx: BridgeContext = click_ctx.obj
        return f(bridge_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    This decorator catches common exceptions and converts them to
    user-friendly error messages with appropriate exit codes.

    Exit codes:
        0: Success
        1: Import errors or unexpected error
        2: Configuration error
        4: Discovery API error
        5: State error (e.g. corrupt mapping file)
        6: Terraform unavailable
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except click.exceptions.Exit:
            raise

        except (ConfigurationError, ValidationError, FileNotFoundError) as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            raise click.exceptions.Exit(2) from e

        except AuthenticationError as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo(
                "\nPlease verify ARM_ACCESS_TOKEN or log in again with `az login`.",
                err=True,
            )
            raise click.exceptions.Exit(4) from e

        except (APIError, NetworkError, DiscoveryError) as e:
            logger.error("discovery_error", error=str(e))
            click.echo(f"Discovery Error: {e}", err=True)
            raise click.exceptions.Exit(4) from e

        except StateError as e:
            logger.error("state_error", error=str(e))
            click.echo(f"State Error: {e}", err=True)
            click.echo(
                "\nThe resource mapping file could not be read or written. "
                "It is not repaired automatically.",
                err=True,
            )
            raise click.exceptions.Exit(5) from e

        except EngineUnavailableError as e:
            logger.error("engine_unavailable", error=str(e))
            click.echo(f"Terraform Error: {e}", err=True)
            click.echo(
                "\nCheck that terraform is installed and `terraform init` has been run "
                "in the output directory.",
                err=True,
            )
            raise click.exceptions.Exit(6) from e

        except EngineError as e:
            logger.error("engine_error", error=str(e))
            click.echo(f"Terraform Error: {e}", err=True)
            raise click.exceptions.Exit(1) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(1) from e

    return wrapper
