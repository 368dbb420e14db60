"""
Progress events and the in-process broker that fans them out.

Producers only call ``publish``; how events reach a client (here, the SSE
endpoint) is the subscriber's business.
"""

import logging
import queue
import threading

logger = logging.getLogger(__name__)


class ProgressReporter:
    def publish(self, event):
        raise NotImplementedError


class NullProgressReporter(ProgressReporter):
    def publish(self, event):
        pass


class ProgressBroker(ProgressReporter):
    """Session token -> subscriber queues. Events nobody listens for are dropped."""

    def __init__(self, max_queued: int = 256):
        self.max_queued = max_queued
        self._lock = threading.Lock()
        self._subscribers = {}

    def subscribe(self, token: str) -> queue.Queue:
        q = queue.Queue(maxsize=self.max_queued)
        with self._lock:
            self._subscribers.setdefault(token, []).append(q)
        return q

    def unsubscribe(self, token: str, q: queue.Queue):
        with self._lock:
            queues = self._subscribers.get(token)
            if not queues:
                return
            if q in queues:
                queues.remove(q)
            if not queues:
                self._subscribers.pop(token, None)

    def subscriber_count(self, token: str) -> int:
        with self._lock:
            return len(self._subscribers.get(token, ()))

    def publish(self, event):
        if not event.session_token:
            return
        with self._lock:
            queues = list(self._subscribers.get(event.session_token, ()))
        for q in queues:
            try:
                q.put_nowait(event)
            except queue.Full:
                logger.debug("Progress queue full for session %s, dropping event", event.session_token)


def safe_publish(reporter, event):
    """Fire-and-forget: a broken reporter never fails the job."""
    if reporter is None:
        return
    try:
        reporter.publish(event)
    except Exception:
        logger.exception("Progress reporter failed for session %s", event.session_token)
