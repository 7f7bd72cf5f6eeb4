"""
CloudFormation stack management utilities.
"""

from .errors import (
    EventFetchError,
    StackNotFoundError,
    StackUtilsError,
    TailTimeoutError,
    UsageError,
)
from .events import StackEvent, fetch_stack_events
from .stack_manager import StackManager, parse_parameters
from .tailer import StackEventTailer
from .template_diff import diff_templates

__all__ = [
    "StackManager",
    "StackEvent",
    "StackEventTailer",
    "fetch_stack_events",
    "parse_parameters",
    "diff_templates",
    "StackUtilsError",
    "UsageError",
    "StackNotFoundError",
    "EventFetchError",
    "TailTimeoutError",
]
