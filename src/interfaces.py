"""
Abstract collaborators used by the update detector.

The detector only talks to these interfaces, so it can be exercised with
in-memory doubles instead of the AWS bindings in `clients`.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from errors import CompletionError
from models import CommandHandle, HostPage, InvocationOutput


@dataclass
class WaitControl:
    """
    Cancellation signal and deadline for a blocking wait.

    With neither set the wait is unbounded.
    """

    cancel_event: Optional[threading.Event] = None
    deadline: Optional[float] = None  # time.monotonic() value

    @classmethod
    def with_timeout(
        cls, timeout: Optional[float], cancel_event: Optional[threading.Event] = None
    ) -> "WaitControl":
        """Create a control whose deadline is `timeout` seconds from now."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(cancel_event=cancel_event, deadline=deadline)

    def check(self, what: str) -> None:
        """
        Raise if the wait should stop.

        Raises:
            CompletionError: If cancelled or past the deadline
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CompletionError(f"Wait for {what} was cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise CompletionError(f"Timed out waiting for {what}")


class InventoryProvider(ABC):
    """Enumerates the hosts that belong to a cluster, one page at a time."""

    @abstractmethod
    def fetch_page(
        self, cluster: str, batch_size: int, cursor: Optional[str] = None
    ) -> HostPage:
        """
        Fetch one page of hosts.

        Args:
            cluster: Cluster short name or ARN
            batch_size: Maximum number of hosts on the page
            cursor: Cursor from the previous page, None for the first page

        Returns:
            HostPage with next_cursor set to None on the last page

        Raises:
            InventoryError: If the page cannot be fetched
        """


class CommandChannel(ABC):
    """Runs commands on hosts and reports their per-host results."""

    @abstractmethod
    def dispatch(
        self,
        host_ids: List[str],
        command_spec: Dict[str, List[str]],
        timeout: Optional[int] = None,
    ) -> CommandHandle:
        """
        Send one command to all given hosts.

        Raises:
            DispatchError: If the command cannot be submitted
        """

    @abstractmethod
    def await_completion(
        self, command_id: str, control: Optional[WaitControl] = None
    ) -> None:
        """
        Block until no invocation of the command is still pending.

        Raises:
            CompletionError: If polling fails, is cancelled or times out
        """

    @abstractmethod
    def fetch_result(self, command_id: str, host_id: str) -> InvocationOutput:
        """
        Fetch the terminal output of one host's invocation.

        Raises:
            ResultError: If the output is missing or malformed
        """

    @abstractmethod
    def fetch_results(self, command_id: str) -> List[InvocationOutput]:
        """
        Fetch the terminal outputs of every invocation of the command.

        Raises:
            ResultError: If any output is missing or malformed
        """
