"""
Forwarding Pipeline

Decides, normalizes and forwards each traffic exchange and finding. Every
event is handled on its own: one policy snapshot, one decision, at most one
POST. Nothing here raises to the host proxy.
"""

import threading
from typing import Any, Dict, Optional
import structlog

from shyhurricane.models.finding import Finding
from shyhurricane.models.traffic import (
    Exchange,
    RequestRecord,
    ResponseRecord,
    TextReader,
    TrafficEvent,
)
from .content_policy import should_skip
from .finding_policy import accepts_finding
from .headers import canonicalize_headers
from .policy_store import PolicyStore
from .renderer import render_finding

logger = structlog.get_logger()


class ForwardingPipeline:
    """
    Policy gate and normalizer in front of the forwarder

    Safe to call from many threads at once; the only shared state is the
    policy store and the statistics counters, which are updated under a lock.
    """

    def __init__(self, policy_store: PolicyStore, forwarder):
        """
        Initialize the pipeline

        Args:
            policy_store: Source of the current Policy
            forwarder: Anything with post(url, payload), usually a Forwarder
        """
        self.policy_store = policy_store
        self.forwarder = forwarder
        self.logger = logger.bind(component="pipeline")
        self._stats_lock = threading.Lock()

        # Statistics
        self.stats = {
            "traffic_forwarded": 0,
            "traffic_skipped": 0,
            "findings_forwarded": 0,
            "findings_rejected": 0,
            "errors": 0
        }

    def handle_exchange(self, exchange: Exchange) -> bool:
        """
        Forward one observed exchange to the index endpoint

        Args:
            exchange: Snapshot built by the proxy adapter

        Returns:
            True if the exchange was handed to the forwarder
        """
        try:
            policy = self.policy_store.snapshot()
            request, response = exchange.request, exchange.response

            if policy.only_in_scope and not request.in_scope:
                self._count("traffic_skipped")
                return False

            content_type = response.content_type
            if should_skip(content_type):
                self.logger.debug("Skipping binary content", url=request.url, content_type=content_type)
                self._count("traffic_skipped")
                return False

            event = TrafficEvent(
                timestamp=exchange.observed_at,
                request=RequestRecord(
                    method=request.method,
                    url=request.url,
                    headers=canonicalize_headers(request.headers),
                    body=self._read_body(request.read_text)
                ),
                response=ResponseRecord(
                    status_code=response.status_code,
                    headers=canonicalize_headers(response.headers),
                    body=self._read_body(response.read_text)
                )
            )

            self.forwarder.post(policy.index_url, event.to_dict())
            self._count("traffic_forwarded")
            return True

        except Exception as e:
            self.logger.error("Error posting index", error=str(e))
            self._count("errors")
            return False

    def handle_finding(self, finding: Finding) -> bool:
        """
        Render one finding and forward it to the findings endpoint

        A finding that cannot be rendered is dropped as a whole.

        Returns:
            True if the report was handed to the forwarder
        """
        try:
            policy = self.policy_store.snapshot()

            if not accepts_finding(finding, policy):
                self.logger.debug(
                    "Finding below policy",
                    title=finding.title,
                    severity=finding.severity.name,
                    confidence=finding.confidence.name
                )
                self._count("findings_rejected")
                return False

            payload = {
                "target": finding.base_url,
                "title": finding.title,
                "markdown": render_finding(finding),
            }

            self.forwarder.post(policy.findings_url, payload)
            self._count("findings_forwarded")
            return True

        except Exception as e:
            self.logger.error("Error posting finding", error=str(e))
            self._count("errors")
            return False

    @staticmethod
    def _read_body(read_text: TextReader) -> Optional[str]:
        """Decode a body, leaving it out when it is not text"""
        try:
            return read_text()
        except Exception:
            # bad unicode or binary data
            return None

    def _count(self, key: str):
        with self._stats_lock:
            self.stats[key] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get pipeline statistics"""
        with self._stats_lock:
            return self.stats.copy()
