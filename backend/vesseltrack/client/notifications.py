"""User-visible notifications ("toasts").

Every outcome the user should see, success or failure, goes through a
:class:`Notifier`. The presentation layer subscribes a renderer; tests read
``Notifier.history``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Toast:
    title: str
    description: str = ""
    variant: str = DEFAULT

    @property
    def is_error(self) -> bool:
        return self.variant == DESTRUCTIVE


class Notifier:
    def __init__(self):
        self._handlers: list[Callable[[Toast], None]] = []
        self.history: list[Toast] = []

    def subscribe(self, handler: Callable[[Toast], None]) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def notify(self, title: str, description: str = "", variant: str = DEFAULT) -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self.history.append(toast)
        if toast.is_error:
            logger.warning("%s: %s", title, description)
        for handler in list(self._handlers):
            handler(toast)
        return toast

    def error(self, title: str, description: str = "") -> Toast:
        return self.notify(title, description, variant=DESTRUCTIVE)

    @property
    def last(self) -> Toast | None:
        return self.history[-1] if self.history else None
