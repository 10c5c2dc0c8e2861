# notifications: in-process listeners + best-effort webhook fan-out
import asyncio
import threading
from collections import deque
from typing import Callable, List, Optional

import httpx

from .config import EVENT_HISTORY, EVENT_SINKS, NOTIFY_TIMEOUT
from .log import get_logger
from .models import BallotEvent

logger = get_logger("events")

Listener = Callable[[BallotEvent], None]


class EventBus:
    """
    Fire-and-forget announcements of ballot activity.
    A failing listener is logged and skipped; emit never raises.
    """

    def __init__(self, history: int = EVENT_HISTORY):
        self._listeners: List[Listener] = []
        self._recent = deque(maxlen=history)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, event: BallotEvent) -> None:
        with self._lock:
            self._recent.append(event)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("listener %r failed on %s", listener, event.kind)

    def recent(self) -> List[BallotEvent]:
        with self._lock:
            return list(self._recent)


async def publish_to_sinks(
    event: BallotEvent,
    sinks: Optional[List[str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Best effort: POST the event to every sink, never fail the caller if some
    sink is down. Returns how many sinks answered 2xx.
    """
    sinks = EVENT_SINKS if sinks is None else sinks
    if not sinks:
        return 0

    async with httpx.AsyncClient(timeout=NOTIFY_TIMEOUT, transport=transport) as client:
        tasks = []
        for sink in sinks:
            tasks.append(client.post(f"{sink}/events", json=event.model_dump()))
        results = await asyncio.gather(*tasks, return_exceptions=True)

    delivered = 0
    for sink, res in zip(sinks, results):
        if isinstance(res, BaseException):
            logger.warning("delivery of %s to %s failed: %s", event.kind, sink, res)
        elif res.is_success:
            delivered += 1
        else:
            logger.warning("sink %s rejected %s with %s", sink, event.kind, res.status_code)
    return delivered
