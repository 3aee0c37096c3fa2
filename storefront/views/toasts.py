import logging
from dataclasses import dataclass, field
from typing import List

from ..common.errors import StorefrontError

_logger = logging.getLogger(__name__)


@dataclass
class Toast:
    level: str
    message: str


@dataclass
class ToastLog:
    """Non-blocking user messages raised at the view boundary."""

    items: List[Toast] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.items.append(Toast("success", message))

    def info(self, message: str) -> None:
        self.items.append(Toast("info", message))

    def error(self, message: str) -> None:
        self.items.append(Toast("error", message))

    def failure(self, action: str, exc: Exception) -> None:
        if isinstance(exc, StorefrontError):
            _logger.warning("%s failed | %s: %s", action, exc.code, exc.message)
        else:
            _logger.exception("%s failed", action)
        self.error(f"Failed to {action}")

    @property
    def last(self):
        return self.items[-1] if self.items else None
