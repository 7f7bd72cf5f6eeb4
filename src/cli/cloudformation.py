#!/usr/bin/env python3
"""
CloudFormation management CLI commands.
"""

import json
import sys
from typing import Dict, Optional, Tuple

import click

from cloudformation import StackManager, UsageError, parse_parameters
from cloudformation.events import StackEvent

from .common import aws_options, handle_errors, status_color


def parse_tags(values: Tuple[str, ...]) -> Dict[str, str]:
    """Parse ``Key=Value`` tag options."""
    tags = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise UsageError(f"Tags must look like Key=Value, got {value!r}")
        tags[key] = val
    return tags


def template_options(func):
    """Options shared by create and update."""
    func = click.option(
        "--tail/--no-tail", default=True, help="Follow stack events until done"
    )(func)
    func = click.option(
        "--tag", "-t", "tags", multiple=True, metavar="KEY=VALUE", help="Stack tag"
    )(func)
    func = click.option(
        "--capability",
        "capabilities",
        multiple=True,
        help="IAM capability (defaults to the configured list)",
    )(func)
    func = click.option(
        "--parameters-file",
        type=click.Path(dir_okay=False),
        help="JSON parameters file in AWS CLI format",
    )(func)
    func = click.option(
        "--parameter",
        "-p",
        "parameters",
        multiple=True,
        metavar="KEY=VALUE",
        help="Template parameter",
    )(func)
    func = click.argument("template", type=click.Path(dir_okay=False))(func)
    func = click.argument("stack_name")(func)
    return func


def _finish_tail(
    manager: StackManager,
    stack_name: str,
    stack_id: Optional[str] = None,
    after_event_id: Optional[str] = None,
) -> None:
    """Tail a stack and exit non-zero if it ended badly."""
    final: StackEvent = manager.tail(
        stack_name, stack_id=stack_id, after_event_id=after_event_id
    )
    if final.failed:
        sys.exit(1)


@click.group()
def main() -> None:
    """CloudFormation stack management commands."""
    pass


@main.command()
@template_options
@aws_options
@handle_errors
def create(
    stack_name, template, parameters, parameters_file, capabilities, tags, tail, region, profile
) -> None:
    """Create STACK_NAME from TEMPLATE."""
    manager = StackManager(region=region, profile=profile)

    stack_id = manager.create_stack(
        stack_name,
        template,
        parameters=parse_parameters(parameters, parameters_file),
        capabilities=list(capabilities) or None,
        tags=parse_tags(tags),
    )
    click.echo(f"🚀 Creating stack {stack_name}")

    if tail:
        _finish_tail(manager, stack_name, stack_id)


@main.command()
@template_options
@aws_options
@handle_errors
def update(
    stack_name, template, parameters, parameters_file, capabilities, tags, tail, region, profile
) -> None:
    """Update STACK_NAME from TEMPLATE."""
    manager = StackManager(region=region, profile=profile)

    # Events up to here belong to earlier operations
    after_event_id = manager.last_event_id(stack_name) if tail else None
    stack_id = manager.update_stack(
        stack_name,
        template,
        parameters=parse_parameters(parameters, parameters_file),
        capabilities=list(capabilities) or None,
        tags=parse_tags(tags),
    )
    if stack_id is None:
        click.echo(f"✅ Stack {stack_name} is already up to date")
        return

    click.echo(f"🔄 Updating stack {stack_name}")

    if tail:
        _finish_tail(manager, stack_name, stack_id, after_event_id)


@main.command()
@click.argument("stack_name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--tail/--no-tail", default=True, help="Follow stack events until done")
@aws_options
@handle_errors
def delete(stack_name, yes, tail, region, profile) -> None:
    """Delete STACK_NAME."""
    manager = StackManager(region=region, profile=profile)

    if not yes:
        click.confirm(f"Delete stack {stack_name}?", abort=True)

    after_event_id = manager.last_event_id(stack_name) if tail else None
    stack_id = manager.delete_stack(stack_name)
    if stack_id is None:
        click.echo(f"Stack {stack_name} does not exist")
        return

    click.echo(f"🗑️  Deleting stack {stack_name}")

    if tail:
        # The name stops resolving once deletion finishes; follow by id
        _finish_tail(manager, stack_name, stack_id, after_event_id)


@main.command()
@click.argument("stack_name")
@click.argument("template", type=click.Path(dir_okay=False))
@aws_options
@handle_errors
def diff(stack_name, template, region, profile) -> None:
    """Show differences between the deployed template and TEMPLATE.

    Exits 1 when the templates differ.
    """
    manager = StackManager(region=region, profile=profile)

    lines = manager.diff_template(stack_name, template)
    if not lines:
        click.echo("✅ No differences")
        return

    for line in lines:
        if line.startswith("+") and not line.startswith("+++"):
            click.echo(click.style(line, fg="green"))
        elif line.startswith("-") and not line.startswith("---"):
            click.echo(click.style(line, fg="red"))
        elif line.startswith("~"):
            click.echo(click.style(line, fg="yellow"))
        else:
            click.echo(line)
    sys.exit(1)


@main.command(name="list")
@click.option("--prefix", help="Only stacks whose name starts with this")
@aws_options
@handle_errors
def list_stacks(prefix, region, profile) -> None:
    """List stacks that have not been deleted."""
    manager = StackManager(region=region, profile=profile)

    stacks = manager.list_stacks(prefix=prefix)
    if not stacks:
        click.echo("No stacks found")
        return

    for stack in stacks:
        click.echo(
            f"{stack['name']:<40} "
            f"{click.style(stack['status'], fg=status_color(stack['status'])):<45} "
            f"{stack['updated']}"
        )


@main.command()
@click.argument("stack_name")
@aws_options
@handle_errors
def status(stack_name, region, profile) -> None:
    """Show the status and outputs of STACK_NAME."""
    manager = StackManager(region=region, profile=profile)

    stack_status = manager.get_stack_status(stack_name)
    if not stack_status:
        click.echo(f"Stack {stack_name} does not exist", err=True)
        sys.exit(1)

    click.echo(f"Stack: {stack_name}")
    click.echo(f"Status: {click.style(stack_status, fg=status_color(stack_status))}")

    outputs = manager.get_stack_outputs(stack_name)
    if outputs:
        click.echo("\nOutputs:")
        for key, value in outputs.items():
            click.echo(f"  {key}: {value}")


@main.command()
@click.argument("stack_name")
@click.argument("output_key", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@aws_options
@handle_errors
def outputs(stack_name, output_key, output_json, region, profile) -> None:
    """Print the outputs of STACK_NAME, or the single OUTPUT_KEY."""
    manager = StackManager(region=region, profile=profile)

    values = manager.get_stack_outputs(stack_name)

    if output_key:
        if output_key not in values:
            click.echo(
                f"Output '{output_key}' not found in stack {stack_name}", err=True
            )
            sys.exit(1)
        click.echo(values[output_key])
    elif output_json:
        click.echo(json.dumps(values, indent=2))
    else:
        for key, value in values.items():
            click.echo(f"{key}\t{value}")


@main.command()
@click.argument("stack_name")
@aws_options
@handle_errors
def template(stack_name, region, profile) -> None:
    """Print the deployed template of STACK_NAME."""
    manager = StackManager(region=region, profile=profile)
    click.echo(manager.get_template(stack_name))


@main.command()
@click.argument("stack_name")
@click.option("--limit", "-n", type=click.IntRange(min=1), help="Only the last N events")
@click.option("--timestamps/--no-timestamps", default=True, help="Show event times")
@aws_options
@handle_errors
def events(stack_name, limit, timestamps, region, profile) -> None:
    """Print the event history of STACK_NAME, oldest first."""
    manager = StackManager(region=region, profile=profile)

    history = manager.get_events(stack_name)
    if limit:
        history = history[-limit:]

    for event in history:
        click.echo(event.format_line(show_timestamp=timestamps))


@main.command()
@click.argument("stack_name")
@click.option("--interval", type=click.FloatRange(min=0, min_open=True), help="Seconds between polls")
@click.option("--max-polls", type=click.IntRange(min=1), help="Give up after N polls")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Give up after N seconds")
@click.option("--timestamps/--no-timestamps", default=None, help="Show event times")
@aws_options
@handle_errors
def tail(stack_name, interval, max_polls, timeout, timestamps, region, profile) -> None:
    """Follow events of STACK_NAME until its current operation finishes.

    Exits 1 when the stack ends in a failed or rolled back state.
    """
    manager = StackManager(region=region, profile=profile)

    final = manager.tail(
        stack_name,
        poll_interval=interval,
        max_polls=max_polls,
        timeout=timeout,
        show_timestamps=timestamps,
    )
    if final.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
