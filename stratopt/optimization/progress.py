"""
Progress publishing for optimization runs.

The orchestrator publishes snapshots to a channel; UI layers subscribe and
iterate. Every subscriber has its own bounded queue, so a slow subscriber
applies backpressure (the publisher waits up to ``put_timeout``) without
being able to crash or stall the run indefinitely.
"""

import queue
import threading
from typing import Callable, Iterator, List, Optional

from utils.logger import get_logger
from .results.models import OptimizationProgress

logger = get_logger(__name__)

_CLOSED = object()


class ProgressSubscription:
    """Iterable view of one subscriber's queue; iteration ends when the run ends."""

    def __init__(self, channel: 'ProgressChannel', maxsize: int):
        self._channel = channel
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def get(self, timeout: Optional[float] = None) -> Optional[OptimizationProgress]:
        """Next snapshot, or None once the channel is closed."""
        item = self._queue.get(timeout=timeout)
        return None if item is _CLOSED else item

    def __iter__(self) -> Iterator[OptimizationProgress]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def close(self):
        self._channel.unsubscribe(self)

    def _offer(self, item, timeout: float) -> bool:
        try:
            self._queue.put(item, timeout=timeout)
            return True
        except queue.Full:
            self.dropped += 1
            return False


class ProgressChannel:
    """Fan-out of progress snapshots to queue subscribers and plain callbacks."""

    def __init__(self, maxsize: int = 256, put_timeout: float = 1.0):
        self.maxsize = maxsize
        self.put_timeout = put_timeout
        self._lock = threading.Lock()
        self._subscriptions: List[ProgressSubscription] = []
        self._callbacks: List[Callable[[OptimizationProgress], None]] = []

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self, self.maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: ProgressSubscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def add_callback(self, callback: Callable[[OptimizationProgress], None]):
        """Add callback for progress updates."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[OptimizationProgress], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def publish(self, progress: OptimizationProgress):
        """Deliver a snapshot to every subscriber; subscriber failures are logged, never raised."""
        with self._lock:
            callbacks = list(self._callbacks)
            subscriptions = list(self._subscriptions)

        for callback in callbacks:
            try:
                callback(progress)
            except Exception as e:
                logger.error(f"Progress callback failed: {e}")

        for subscription in subscriptions:
            if not subscription._offer(progress, self.put_timeout):
                logger.warning(f"Progress subscriber queue full; dropped snapshot for iteration {progress.iteration}")

    def close(self):
        """Signal end-of-run to every queue subscriber and forget them."""
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            if not subscription._offer(_CLOSED, self.put_timeout):
                logger.warning("Progress subscriber queue full; could not deliver end-of-run marker")
