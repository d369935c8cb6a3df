"""
Collaborator contracts for confirmation prompts and notifications, plus the
implementations used outside a graphical front end.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from util.logging import logger


@dataclass(frozen=True)
class ConfirmResult:
    confirmed: bool


class ConfirmationPrompt(Protocol):
    async def confirm(self, title: str, message: str, confirm_label: str,
                      cancel_label: str) -> ConfirmResult: ...


class Notifier(Protocol):
    def notify_success(self, message: str) -> None: ...

    def notify_error(self, message: str) -> None: ...

    def notify_warning(self, message: str) -> None: ...

    def notify_busy(self, message: str) -> None: ...

    def notify_busy_done(self) -> None: ...


class LoggingNotifier:
    """Routes notifications to the structured logger."""

    def notify_success(self, message: str) -> None:
        logger.info(message)

    def notify_error(self, message: str) -> None:
        logger.error(message)

    def notify_warning(self, message: str) -> None:
        logger.warning(message)

    def notify_busy(self, message: str) -> None:
        logger.info(f"{message}...")

    def notify_busy_done(self) -> None:
        logger.debug("busy indicator closed")


class AutoConfirm:
    """Answers every prompt the same way (--yes on the command line)."""

    def __init__(self, answer: bool = True):
        self.answer = answer

    async def confirm(self, title: str, message: str, confirm_label: str,
                      cancel_label: str) -> ConfirmResult:
        logger.info(f"{title}: {message} -> {'confirmed' if self.answer else 'declined'}")
        return ConfirmResult(self.answer)


class ConsolePrompt:
    """Asks on stdin without blocking the event loop."""

    async def confirm(self, title: str, message: str, confirm_label: str,
                      cancel_label: str) -> ConfirmResult:
        question = f"{title}\n{message}\n[{confirm_label}: y / {cancel_label}: n] "
        answer = await asyncio.to_thread(input, question)
        return ConfirmResult(answer.strip().lower() in ("y", "yes"))
