"""
In-process publish/subscribe hub.

Each subscriber owns a bounded queue. ``publish`` never blocks on a
subscriber: when a queue is full that subscriber misses the message.
"""
import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from flask import current_app

from .metrics import BROADCAST_COUNT, BROADCAST_DROPPED

log = logging.getLogger(__name__)

MOVIES_CHANNEL = "movies"


@dataclass(frozen=True)
class Message:
    channel: str
    action: str          # "prepend", "refresh"
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        return f"event: {self.action}\ndata: {json.dumps(self.payload)}\n\n"


class Subscription:
    def __init__(self, broadcaster: "Broadcaster", channel: str, maxsize: int):
        self.broadcaster = broadcaster
        self.channel = channel
        self.queue: "queue.Queue[Message]" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def get(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        if not self.closed:
            self.closed = True
            self.broadcaster.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class Broadcaster:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subs: Dict[str, Set[Subscription]] = {}

    def subscribe(self, channel: str) -> Subscription:
        sub = Subscription(self, channel, self.queue_size)
        with self._lock:
            self._subs.setdefault(channel, set()).add(sub)
        log.debug("subscribed to %s (%d listening)", channel, self.subscriber_count(channel))
        return sub

    def unsubscribe(self, sub: Subscription):
        with self._lock:
            subs = self._subs.get(sub.channel)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subs[sub.channel]

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subs.get(channel, ()))

    def publish(self, channel: str, action: str, payload: Dict[str, Any]) -> int:
        """Queue the message for every subscriber of ``channel``; returns how many got it."""
        msg = Message(channel, action, payload)
        with self._lock:
            targets = list(self._subs.get(channel, ()))

        delivered = 0
        for sub in targets:
            try:
                sub.queue.put_nowait(msg)
                delivered += 1
            except queue.Full:
                BROADCAST_DROPPED.labels(channel).inc()
                log.warning("subscriber queue full on %s, dropping %s", channel, action)

        BROADCAST_COUNT.labels(channel, action).inc()
        log.info("published %s on %s to %d subscriber(s)", action, channel, delivered)
        return delivered


def get_broadcaster() -> Broadcaster:
    return current_app.extensions["broadcaster"]
