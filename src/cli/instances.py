#!/usr/bin/env python3
"""
EC2 instance CLI commands.
"""

import sys

import click

from ec2 import InstanceFinder

from .common import aws_options, handle_errors


@click.group()
def main() -> None:
    """EC2 instance commands."""
    pass


@main.command()
@click.argument("stack_name")
@aws_options
@handle_errors
def instances(stack_name, region, profile) -> None:
    """List running instances of STACK_NAME."""
    finder = InstanceFinder(region=region, profile=profile)

    found = finder.list_instances(stack_name)
    if not found:
        click.echo(f"No running instances in stack {stack_name}")
        return

    for n, instance in enumerate(found, 1):
        click.echo(
            f"{n:>3}  {instance['id']:<20} {instance['name']:<30} "
            f"{instance['public_ip'] or '-':<16} {instance['private_ip'] or '-'}"
        )


@main.command(context_settings={"ignore_unknown_options": True})
@click.argument("stack_name")
@click.argument("ssh_args", nargs=-1, type=click.UNPROCESSED)
@click.option("--node", "-n", type=int, help="1-based instance number")
@click.option("--user", "-u", help="Login user (defaults to the configured user)")
@click.option("--key", "-i", "key_file", help="Private key file")
@click.option("--private/--public", "use_private_ip", default=None, help="Address to connect to")
@aws_options
@handle_errors
def ssh(stack_name, ssh_args, node, user, key_file, use_private_ip, region, profile) -> None:
    """SSH into an instance of STACK_NAME. Extra arguments go to ssh."""
    finder = InstanceFinder(region=region, profile=profile)

    code = finder.ssh(
        stack_name,
        index=node,
        user=user,
        key_file=key_file,
        use_private_ip=use_private_ip,
        extra_args=ssh_args,
    )
    sys.exit(code)
