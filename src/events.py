"""Typed in-process message bus connecting the console components."""

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable

from src.models import ScriptLinks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListRefreshed:
    """The record list finished a successful load."""

    record_count: int


@dataclass(frozen=True)
class RefreshRequested:
    """Ask the record list to reload (sent while a submission is polling)."""

    reason: str = ""


@dataclass(frozen=True)
class SelectionChanged:
    """A row was selected (links + name) or the selection was cleared (None)."""

    links: ScriptLinks | None
    episode_name: str | None

    @property
    def cleared(self) -> bool:
        return self.episode_name is None

    @classmethod
    def clear(cls) -> "SelectionChanged":
        return cls(links=None, episode_name=None)


@dataclass(frozen=True)
class Toast:
    """A transient notification for the operator."""

    title: str
    description: str = ""
    variant: str = "default"  # default | destructive | warning
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


Handler = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """Publish/subscribe keyed by event class.

    Handlers run in subscription order; async handlers are awaited. A failing
    handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> Callable[[], None]:
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    async def publish(self, event: Any) -> None:
        for handler in list(self._handlers.get(type(event), ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Handler %r failed for %s: %s", handler, type(event).__name__, e, exc_info=True)

    def handler_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, ()))
