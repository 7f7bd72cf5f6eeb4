"""
Options and error handling shared by the CLI commands.
"""

import functools
import logging
import sys
from typing import Any, Callable

import click

from cloudformation.errors import UsageError
from config import ConfigurationError

logger = logging.getLogger(__name__)

region_option = click.option("--region", "-r", help="AWS region")
profile_option = click.option("--profile", help="AWS profile to use")


def aws_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add --region and --profile to a command."""
    return region_option(profile_option(func))


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report failures the same way for every command.

    Usage errors exit with click's usage status (2), anything else prints
    ``Error: ...`` to stderr and exits 1.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except UsageError as e:
            raise click.UsageError(str(e))
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except ConfigurationError as e:
            click.echo(f"Configuration error: {e}", err=True)
            sys.exit(1)
        except Exception as e:
            logger.debug("Command failed", exc_info=True)
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    return wrapper


def status_color(status: str) -> str:
    """Color for a CloudFormation status string."""
    if "FAILED" in status or "ROLLBACK" in status:
        return "red"
    if "COMPLETE" in status:
        return "green"
    return "yellow"
