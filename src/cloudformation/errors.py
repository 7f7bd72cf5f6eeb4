"""
Exceptions raised by the stack utilities.
"""


class StackUtilsError(Exception):
    """Base class for stack-utils errors."""


class UsageError(StackUtilsError):
    """Raised when a command is missing or given invalid arguments."""


class StackNotFoundError(StackUtilsError):
    """Raised when the requested stack does not exist."""

    def __init__(self, stack_name: str):
        super().__init__(f"Stack {stack_name} does not exist")
        self.stack_name = stack_name


class EventFetchError(StackUtilsError):
    """Raised when stack events could not be fetched repeatedly."""


class TailTimeoutError(StackUtilsError):
    """Raised when tailing gives up before the stack reaches a terminal status."""
