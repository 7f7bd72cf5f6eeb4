"""
CloudFormation stack events.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

TERMINAL_SUFFIXES = ("_COMPLETE", "_FAILED")


def stack_name_from_id(stack: str) -> str:
    """Name part of a stack ARN; plain names are returned unchanged.

    ``arn:aws:cloudformation:us-east-1:123456789012:stack/app/abc-123`` -> ``app``
    """
    if stack.startswith("arn:") and ":stack/" in stack:
        return stack.split(":stack/", 1)[1].split("/", 1)[0]
    return stack


@dataclass(frozen=True)
class StackEvent:
    """A single status record for one resource of a stack.

    Only the resource id, type and status take part in equality, so the same
    transition seen on two polls compares equal even if display fields differ.
    """

    resource_id: str
    resource_type: str
    status: str
    timestamp: Optional[datetime] = field(default=None, compare=False)
    reason: Optional[str] = field(default=None, compare=False)
    physical_id: Optional[str] = field(default=None, compare=False)
    event_id: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_api(cls, event: Dict[str, Any]) -> "StackEvent":
        """Build an event from a describe_stack_events entry."""
        return cls(
            resource_id=event["LogicalResourceId"],
            resource_type=event["ResourceType"],
            status=event["ResourceStatus"],
            timestamp=event.get("Timestamp"),
            reason=event.get("ResourceStatusReason"),
            physical_id=event.get("PhysicalResourceId"),
            event_id=event.get("EventId"),
        )

    def is_terminal_for(self, stack_name: str) -> bool:
        """Whether this event closes the current operation on ``stack_name``.

        ``stack_name`` may also be the stack's ARN.
        """
        name = stack_name_from_id(stack_name)
        return self.resource_id == name and self.status.endswith(TERMINAL_SUFFIXES)

    @property
    def failed(self) -> bool:
        """Whether the status reports a failure or rollback."""
        return self.status.endswith("_FAILED") or "ROLLBACK" in self.status

    def format_line(self, show_timestamp: bool = False) -> str:
        """Render the event as one line of output."""
        line = f"{self.resource_id} {self.resource_type} {self.status}"
        if self.reason:
            line = f"{line}  {self.reason}"
        if show_timestamp and self.timestamp is not None:
            line = f"{self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} {line}"
        return line

    def __str__(self) -> str:
        return self.format_line()


def fetch_stack_events(cloudformation: Any, stack_name: str) -> List[StackEvent]:
    """Fetch every event of a stack, oldest first.

    Args:
        cloudformation: boto3 CloudFormation client
        stack_name: Name or id of the stack

    Returns:
        Events in the order they occurred
    """
    events: List[StackEvent] = []

    paginator = cloudformation.get_paginator("describe_stack_events")
    for page in paginator.paginate(StackName=stack_name):
        for event in page.get("StackEvents", []):
            events.append(StackEvent.from_api(event))

    # AWS returns newest first
    events.reverse()
    return events


def events_after(events: List[StackEvent], event_id: Optional[str]) -> List[StackEvent]:
    """Drop every event up to and including the one with ``event_id``.

    Used to hide the history of earlier operations when following a new one.
    If ``event_id`` is None or not in ``events`` nothing is dropped.
    """
    if event_id is None:
        return events

    for index, event in enumerate(events):
        if event.event_id == event_id:
            return events[index + 1:]
    return events
