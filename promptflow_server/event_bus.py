"""In-process event bus for run notifications.

Events are published on named channels:
  - ``workflow-execution.{execution_id}``: observers of one run
  - ``user.{user_id}``: everything for the owning user

Subscribers receive SSE-formatted strings. Events pushed to a channel with no
subscriber are buffered (bounded by size and age) and flushed to the first
subscriber.

Event Envelope:
  {
    "event": "<event_type>",
    "data": {"timestamp": "<ISO 8601>", ...payload}
  }
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

from promptflow.engine.events import (
    ExecutionEvent,
    WorkflowExecutionCompleted,
    WorkflowExecutionFailed,
    execution_channel,
)
from promptflow.logging_config import get_api_logger
from promptflow_server.config import EVENT_BUFFER_SIZE

logger = get_api_logger()

BUFFER_MAX_AGE_SECS = 600  # 10 minutes

# Events that tell an execution stream to close
STOP_EVENTS = frozenset({
    WorkflowExecutionCompleted.event_type,
    WorkflowExecutionFailed.event_type,
})


class EventBus:
    """Channel-based pub/sub with pre-subscription buffering."""

    def __init__(
        self,
        buffer_max_events: int = EVENT_BUFFER_SIZE,
        buffer_max_age_secs: int = BUFFER_MAX_AGE_SECS,
    ):
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._buffers: Dict[str, dict] = {}
        self._buffer_max_events = buffer_max_events
        self._buffer_max_age_secs = buffer_max_age_secs
        self._lock = asyncio.Lock()

    def push(self, channel: str, event_type: str, data: Dict[str, Any]) -> None:
        """Deliver an event to every subscriber of ``channel`` or buffer it."""
        event = {
            "event": event_type,
            "data": {"timestamp": datetime.now(timezone.utc).isoformat(), **data},
        }
        queues = self._subscribers.get(channel)
        if queues:
            for queue in queues:
                queue.put_nowait(event)
            logger.info(f"Event sent: {event_type} on {channel} ({len(queues)} subscribers)")
        else:
            self._buffer_event(channel, event)

    async def subscribe(
        self,
        channel: str,
        stop_events: Optional[frozenset] = None,
        keepalive_interval: float = 30.0,
    ) -> AsyncGenerator[str, None]:
        """Yield SSE strings for ``channel`` until a stop event arrives.

        Args:
            channel: Channel name
            stop_events: Event types that end the stream. None streams forever.
            keepalive_interval: Seconds between keepalive comments
        """
        queue: asyncio.Queue = asyncio.Queue()
        async with self._lock:
            self._subscribers.setdefault(channel, []).append(queue)
            buf = self._buffers.pop(channel, None)

        logger.info(f"Client subscribed: {channel}")
        try:
            for event in (buf["events"] if buf else []):
                yield format_sse(event)
                if stop_events and event["event"] in stop_events:
                    return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive_interval)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(event)
                if stop_events and event["event"] in stop_events:
                    return
        finally:
            async with self._lock:
                queues = self._subscribers.get(channel, [])
                if queue in queues:
                    queues.remove(queue)
                if not queues:
                    self._subscribers.pop(channel, None)

    def buffered(self, channel: str) -> List[dict]:
        buf = self._buffers.get(channel)
        return list(buf["events"]) if buf else []

    def _buffer_event(self, channel: str, event: dict) -> None:
        if channel not in self._buffers:
            self._cleanup_stale_buffers()
            self._buffers[channel] = {"events": [], "created_at": time.monotonic()}

        buf = self._buffers[channel]
        if len(buf["events"]) < self._buffer_max_events:
            buf["events"].append(event)
        else:
            logger.warning(
                f"Buffer full ({self._buffer_max_events}), dropping: {event['event']} on {channel}"
            )

    def _cleanup_stale_buffers(self) -> None:
        now = time.monotonic()
        stale = [
            channel
            for channel, buf in self._buffers.items()
            if now - buf["created_at"] > self._buffer_max_age_secs
        ]
        for channel in stale:
            self._buffers.pop(channel, None)


def format_sse(event: dict) -> str:
    return f"event: {event['event']}\ndata: {json.dumps(event['data'], default=str)}\n\n"


# --- Singleton ---

_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global EventBus singleton."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


# --- Engine adapters ---


class EventBusNotifier:
    """ExecutionNotifier publishing completion events on their channels."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or get_event_bus()

    async def publish(self, event: ExecutionEvent) -> None:
        payload = event.payload()
        for channel in event.channels():
            self.bus.push(channel, event.event_type, dict(payload))


def node_progress_listener(execution_id: str, bus: Optional[EventBus] = None):
    """Engine node listener pushing node events to the execution channel."""
    target = bus or get_event_bus()
    channel = execution_channel(execution_id)

    async def listener(event: str, node_id: str, payload: Dict[str, Any]) -> None:
        target.push(channel, event, {"execution_id": execution_id, "node_id": node_id, **payload})

    return listener
