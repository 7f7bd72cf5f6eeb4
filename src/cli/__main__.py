#!/usr/bin/env python3
"""Main CLI entry point for stack utilities."""

import json
import logging
from typing import Optional

import click

from config import get_config_manager

from .autoscaling import main as autoscaling_commands
from .cloudformation import main as cf_commands
from .common import handle_errors
from .instances import main as ec2_commands


@click.group()
@click.version_option(package_name="stack-utils")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Configuration file (default: ./stack-utils.yaml or ~/.stack-utils.yaml)",
)
@handle_errors
def cli(verbose: bool, config_path: Optional[str]) -> None:
    """CloudFormation, Auto Scaling and EC2 helpers.

    Thin conveniences over the AWS APIs for day to day stack work.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if config_path:
        # Loaded once here; commands pick it up through get_config()
        get_config_manager(config_path)


cli.add_command(cf_commands, name="cloudformation")
cli.add_command(cf_commands, name="cf")
cli.add_command(autoscaling_commands, name="autoscaling")
cli.add_command(autoscaling_commands, name="asg")
cli.add_command(ec2_commands, name="ec2")


@cli.group()
def config() -> None:
    """Inspect and create the configuration file."""
    pass


@config.command()
@handle_errors
def show() -> None:
    """Print the effective configuration."""
    manager = get_config_manager()
    source = manager.config_path or "defaults"
    click.echo(f"# source: {source}")
    click.echo(json.dumps(manager.config.to_dict(), indent=2))


@config.command()
@click.option(
    "--path",
    type=click.Path(dir_okay=False),
    help="Where to write the file (default: ./stack-utils.yaml)",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
@handle_errors
def init(path: Optional[str], force: bool) -> None:
    """Write the effective configuration to a YAML file."""
    manager = get_config_manager()
    target = manager.save_config(path, overwrite=force)
    click.echo(f"✅ Configuration saved to {target}")


if __name__ == "__main__":
    cli()
