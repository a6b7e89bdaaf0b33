"""Flow event bus — routes progress and transaction events to observers.

Observers are plain callables registered per channel. A failing observer
is logged and skipped; it never aborts the deployment that emitted the
event.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from siteforge.models.deployment import ProgressEvent, RecordedTransaction

logger = logging.getLogger(__name__)


class FlowChannel(str, Enum):
    PROGRESS = "progress"
    TRANSACTION_RECORDED = "transaction_recorded"


_PAYLOAD_TYPES: dict[FlowChannel, type] = {
    FlowChannel.PROGRESS: ProgressEvent,
    FlowChannel.TRANSACTION_RECORDED: RecordedTransaction,
}


class FlowEventBus:
    """Dispatches typed events to the handlers registered on a channel."""

    def __init__(self) -> None:
        self._handlers: dict[FlowChannel, list[Callable[[Any], object]]] = {
            channel: [] for channel in FlowChannel
        }

    def register_handler(
        self, channel: FlowChannel | str, handler: Callable[[Any], object]
    ) -> None:
        """Register a handler for a specific channel."""
        self._handlers[FlowChannel(channel)].append(handler)

    def unregister_handler(
        self, channel: FlowChannel | str, handler: Callable[[Any], object]
    ) -> None:
        handlers = self._handlers[FlowChannel(channel)]
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, channel: FlowChannel | str, event: Any) -> int:
        """Deliver *event* to every handler on *channel*.

        Returns the number of handlers that completed without raising.
        """
        channel = FlowChannel(channel)
        expected = _PAYLOAD_TYPES[channel]
        if not isinstance(event, expected):
            raise TypeError(
                f"{channel.value} events must be {expected.__name__}, "
                f"got {type(event).__name__}"
            )

        delivered = 0
        for handler in list(self._handlers[channel]):
            try:
                handler(event)
            except Exception:
                logger.exception("Observer %r failed on %s event", handler, channel.value)
                continue
            delivered += 1
        return delivered

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def on_progress(self, handler: Callable[[ProgressEvent], object]) -> None:
        self.register_handler(FlowChannel.PROGRESS, handler)

    def on_transaction(self, handler: Callable[[RecordedTransaction], object]) -> None:
        self.register_handler(FlowChannel.TRANSACTION_RECORDED, handler)
