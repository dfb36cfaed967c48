"""Queued command and command outcome."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from pyteslacar.exceptions import TeslaError


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Terminal outcome of one queued command.

    ``data`` holds the decoded ``response`` object on success. ``error``
    holds the exception that ended the command otherwise; it is delivered
    rather than raised so the queue keeps draining.
    """

    command: str
    success: bool
    status_code: int | None = None
    data: Any = None
    message: str = ""
    error: TeslaError | None = None
    retries: int = 0

    def raise_for_error(self) -> CommandResult:
        """Raise :attr:`error` if the command failed, else return ``self``."""
        if self.error is not None:
            raise self.error
        return self


@dataclass(slots=True)
class Command:
    """A unit of work in the dispatcher queue.

    ``future`` is resolved exactly once with a :class:`CommandResult`.
    """

    name: str
    parameters: Any = None
    retry_count: int = 0
    future: asyncio.Future[CommandResult] | None = None

    def resolve(self, result: CommandResult) -> bool:
        """Complete the future; returns ``False`` if it was already done."""
        if self.future is None or self.future.done():
            return False
        self.future.set_result(result)
        return True
