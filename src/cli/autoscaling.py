#!/usr/bin/env python3
"""
Auto Scaling group CLI commands.
"""

import click

from cloudformation import UsageError
from ec2 import AutoScalingManager

from .common import aws_options, handle_errors


@click.group()
def main() -> None:
    """Auto Scaling group commands."""
    pass


@main.command(name="list")
@click.option("--stack-name", "-s", help="Only groups owned by this stack")
@aws_options
@handle_errors
def list_groups(stack_name, region, profile) -> None:
    """List Auto Scaling groups and their capacity."""
    manager = AutoScalingManager(region=region, profile=profile)

    groups = manager.list_groups(stack_name=stack_name)
    if not groups:
        click.echo("No Auto Scaling groups found")
        return

    click.echo(f"{'NAME':<50} {'DESIRED':>7} {'MIN':>5} {'MAX':>5} {'RUNNING':>7}")
    for group in groups:
        click.echo(
            f"{group['name']:<50} {group['desired']:>7} {group['min']:>5} "
            f"{group['max']:>5} {group['instances']:>7}"
        )


@main.command()
@click.argument("desired", type=click.IntRange(min=0))
@click.option("--group", "-g", help="Auto Scaling group name")
@click.option("--stack-name", "-s", help="Scale every group of this stack")
@aws_options
@handle_errors
def scale(desired, group, stack_name, region, profile) -> None:
    """Set the desired capacity of a group, or of every group in a stack."""
    if bool(group) == bool(stack_name):
        raise UsageError("Give exactly one of --group or --stack-name")

    manager = AutoScalingManager(region=region, profile=profile)

    if group:
        changed = [group] if manager.scale(group, desired) else []
    else:
        changed = manager.scale_stack(stack_name, desired)

    if not changed:
        click.echo("✅ No changes")
        return

    for name in changed:
        click.echo(f"📈 Scaled {name} to {desired} instances")
