"""
Progress events for callers.

Events are plain dicts: {"type": info|warning|success|error|complete,
"message": str, ...extra}. A sink is any callable taking one event. When
the consumer goes away the sink raises SinkClosedError; from then on the
emitter drops events silently, so a running session just finishes.
"""

import logging
import queue
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .errors import SinkClosedError

logger = logging.getLogger(__name__)

EVENT_TYPES = ("info", "warning", "success", "error", "complete")

Sink = Callable[[Dict[str, Any]], None]


class ProgressEmitter:
    def __init__(self, sink: Optional[Sink] = None):
        self._sink = sink
        self.closed = sink is None
        self.emitted = 0

    def emit(self, event_type: str, message: str = "", **data: Any) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown progress event type: {event_type}")
        logger.debug(f"[{event_type}] {message}")
        if self.closed:
            return
        event = {"type": event_type, "message": message, "timestamp": datetime.now().isoformat()}
        event.update(data)
        try:
            self._sink(event)
            self.emitted += 1
        except SinkClosedError:
            logger.info("📴 Progress consumer disconnected; continuing without events")
            self.closed = True

    def info(self, message: str, **data: Any) -> None:
        self.emit("info", message, **data)

    def warning(self, message: str, **data: Any) -> None:
        self.emit("warning", message, **data)

    def success(self, message: str, **data: Any) -> None:
        self.emit("success", message, **data)

    def error(self, message: str, **data: Any) -> None:
        self.emit("error", message, **data)

    def complete(self, payload: Dict[str, Any], message: str = "Done") -> None:
        self.emit("complete", message, data=payload)


class QueueSink:
    """Sink feeding a thread-safe queue; close() turns further puts into SinkClosedError"""

    def __init__(self, q: Optional["queue.Queue"] = None):
        self.queue = q if q is not None else queue.Queue()
        self._closed = False

    def __call__(self, event: Dict[str, Any]) -> None:
        if self._closed:
            raise SinkClosedError("progress sink closed")
        self.queue.put(event)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


def silent() -> ProgressEmitter:
    return ProgressEmitter(None)
