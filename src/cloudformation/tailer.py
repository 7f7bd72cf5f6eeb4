"""
Follow the event log of a CloudFormation stack until its operation finishes.
"""

import logging
import time
from typing import Callable, List, Optional

import click
from botocore.exceptions import BotoCoreError, ClientError

from .errors import EventFetchError, StackNotFoundError, TailTimeoutError, UsageError
from .events import StackEvent

logger = logging.getLogger(__name__)

FetchEvents = Callable[[str], List[StackEvent]]


class StackEventTailer:
    """Print new stack events as they appear.

    Each poll fetches the whole event history. Everything but the last event
    is compared with the previous poll and only events not seen before are
    printed. The last event is held back until it is either followed by newer
    events or turns out to be the stack's terminal status.
    """

    def __init__(
        self,
        fetch: FetchEvents,
        poll_interval: float = 1.0,
        max_polls: Optional[int] = None,
        timeout: Optional[float] = None,
        max_fetch_errors: int = 3,
        show_timestamps: bool = False,
        echo: Callable[[str], None] = click.echo,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize tailer.

        Args:
            fetch: Returns all events of a stack, oldest first
            poll_interval: Seconds to wait between polls
            max_polls: Give up after this many fetches (unbounded if None)
            timeout: Give up after this many seconds (unbounded if None)
            max_fetch_errors: Consecutive AWS errors tolerated before failing
            show_timestamps: Prefix printed events with their timestamp
            echo: Output sink for event lines
            sleep: Sleep function
            clock: Monotonic clock used for the timeout
        """
        self.fetch = fetch
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.timeout = timeout
        self.max_fetch_errors = max_fetch_errors
        self.show_timestamps = show_timestamps
        self.echo = echo
        self.sleep = sleep
        self.clock = clock

        self.previous: Optional[List[StackEvent]] = None
        self.current: Optional[List[StackEvent]] = None

    def tail(self, stack_name: str) -> StackEvent:
        """Tail events of ``stack_name`` until a terminal status shows up.

        Returns:
            The terminal event, which has already been printed
        """
        if not stack_name:
            raise UsageError("A stack name is required")

        self.previous = None
        self.current = None

        polls = 0
        fetch_errors = 0
        started = self.clock()

        while True:
            self._check_limits(stack_name, polls, started)
            polls += 1

            try:
                snapshot = self.fetch(stack_name)
                fetch_errors = 0
            except (ClientError, BotoCoreError) as e:
                if "does not exist" in str(e):
                    raise StackNotFoundError(stack_name) from e
                fetch_errors += 1
                if fetch_errors > self.max_fetch_errors:
                    raise EventFetchError(
                        f"Failed to fetch events for {stack_name}: {e}"
                    ) from e
                logger.warning(
                    f"Error fetching events for {stack_name} "
                    f"({fetch_errors}/{self.max_fetch_errors}): {e}"
                )
                snapshot = []

            if not snapshot:
                self.sleep(self.poll_interval)
                continue

            self.current = snapshot[:-1]
            final = snapshot[-1]

            for event in self.new_events(self.previous, self.current):
                self._print(event)

            self.previous = self.current

            if final.is_terminal_for(stack_name):
                self._print(final)
                return final

            self.sleep(self.poll_interval)

    @staticmethod
    def new_events(
        previous: Optional[List[StackEvent]], current: List[StackEvent]
    ) -> List[StackEvent]:
        """Events in ``current`` that are not in ``previous``, in ``current`` order."""
        if previous is None:
            return list(current)
        if current == previous:
            return []

        seen = set(previous)
        return [event for event in current if event not in seen]

    def _check_limits(self, stack_name: str, polls: int, started: float) -> None:
        """Raise if the configured poll count or timeout has been used up."""
        if self.max_polls is not None and polls >= self.max_polls:
            raise TailTimeoutError(
                f"Stack {stack_name} did not finish within {self.max_polls} polls"
            )

        if self.timeout is not None and self.clock() - started >= self.timeout:
            raise TailTimeoutError(
                f"Stack {stack_name} did not finish within {self.timeout} seconds"
            )

    def _print(self, event: StackEvent) -> None:
        self.echo(event.format_line(show_timestamp=self.show_timestamps))
