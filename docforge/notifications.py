"""User-visible notifications."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Tuple


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Route notifications to the log; used by the CLI and the REST server."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


@dataclass
class RecordingNotifier:
    messages: List[Tuple[str, str]] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))
