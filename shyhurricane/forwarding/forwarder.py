"""
Best-effort HTTP delivery to the collection service

Each payload gets exactly one POST attempt. Failures are logged and counted,
never raised: a slow or broken collector must not break the proxy.
"""

import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, Optional
import requests
import structlog

logger = structlog.get_logger()


class DeliveryOutcome(str, Enum):
    """What happened to a single payload"""

    DELIVERED = "delivered"
    REJECTED = "rejected"   # collector answered with status >= 400
    FAILED = "failed"       # serialization or transport error
    DROPPED = "dropped"     # never attempted (queue full or shut down)
    QUEUED = "queued"       # handed to the dispatch pool


class Forwarder:
    """
    Synchronous JSON poster

    Blocks the calling thread for the duration of the POST.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the forwarder

        Args:
            timeout: Seconds to wait for connect and read; None waits indefinitely
        """
        self.timeout = timeout
        self.logger = logger.bind(component="forwarder")
        self._stats_lock = threading.Lock()

        # Statistics
        self.stats = {
            DeliveryOutcome.DELIVERED.value: 0,
            DeliveryOutcome.REJECTED.value: 0,
            DeliveryOutcome.FAILED.value: 0,
        }

    def post(self, url: str, payload: Dict[str, Any]) -> DeliveryOutcome:
        """
        POST a payload as JSON

        Args:
            url: Absolute endpoint URL
            payload: JSON-serializable mapping

        Returns:
            DeliveryOutcome of the single attempt
        """
        try:
            body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            self.logger.error("Failed to serialize payload", url=url, error=str(e))
            return self._record(DeliveryOutcome.FAILED)

        try:
            response = requests.post(
                url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout
            )
            status = response.status_code
            response.close()
        except requests.RequestException as e:
            self.logger.error("Failed to POST", url=url, error=str(e))
            return self._record(DeliveryOutcome.FAILED)

        if status >= 400:
            self.logger.warning("Failed to POST", url=url, status=status)
            return self._record(DeliveryOutcome.REJECTED)

        self.logger.debug("Payload delivered", url=url, status=status)
        return self._record(DeliveryOutcome.DELIVERED)

    def _record(self, outcome: DeliveryOutcome) -> DeliveryOutcome:
        with self._stats_lock:
            self.stats[outcome.value] += 1
        return outcome

    def get_stats(self) -> Dict[str, int]:
        """Get forwarder statistics"""
        with self._stats_lock:
            return self.stats.copy()

    def shutdown(self):
        """Nothing to release for inline delivery"""


class DispatchingForwarder:
    """
    Bounded worker pool in front of a Forwarder

    post() returns immediately. At most `queue_size` payloads wait or run at
    once; anything beyond that is dropped rather than blocking the caller.
    """

    def __init__(self, forwarder: Forwarder, workers: int = 4, queue_size: int = 256):
        self.forwarder = forwarder
        self.logger = logger.bind(component="dispatcher")
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shyhurricane-post")
        self._slots = threading.BoundedSemaphore(queue_size)
        self._closed = False
        self._stats_lock = threading.Lock()

        # Statistics
        self.stats = {
            DeliveryOutcome.QUEUED.value: 0,
            DeliveryOutcome.DROPPED.value: 0,
        }

    def post(self, url: str, payload: Dict[str, Any]) -> DeliveryOutcome:
        if self._closed:
            self.logger.warning("Dispatcher closed, dropping payload", url=url)
            return self._record(DeliveryOutcome.DROPPED)

        if not self._slots.acquire(blocking=False):
            self.logger.warning("Dispatch queue full, dropping payload", url=url)
            return self._record(DeliveryOutcome.DROPPED)

        try:
            future = self._executor.submit(self.forwarder.post, url, payload)
        except RuntimeError as e:
            # Executor already shut down
            self._slots.release()
            self.logger.warning("Dispatcher closed, dropping payload", url=url, error=str(e))
            return self._record(DeliveryOutcome.DROPPED)

        future.add_done_callback(self._release)
        return self._record(DeliveryOutcome.QUEUED)

    def _release(self, future: Future):
        self._slots.release()
        if future.cancelled():
            self._record(DeliveryOutcome.DROPPED)

    def _record(self, outcome: DeliveryOutcome) -> DeliveryOutcome:
        with self._stats_lock:
            self.stats[outcome.value] += 1
        return outcome

    def get_stats(self) -> Dict[str, int]:
        """Dispatcher counters merged with those of the wrapped forwarder"""
        with self._stats_lock:
            stats = self.stats.copy()
        return {**self.forwarder.get_stats(), **stats}

    def shutdown(self, wait: bool = False):
        """Stop accepting payloads and cancel the ones still queued"""
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
        self.logger.info("Dispatcher stopped", **self.get_stats())


def build_forwarder(config) -> Any:
    """
    Create the forwarder described by the forwarding configuration

    Args:
        config: ForwardingConfig section
    """
    # 0 in configuration means no timeout
    forwarder = Forwarder(timeout=config.request_timeout_seconds or None)
    if config.dispatch_workers > 0:
        return DispatchingForwarder(
            forwarder,
            workers=config.dispatch_workers,
            queue_size=config.dispatch_queue_size
        )
    return forwarder
