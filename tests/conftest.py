"""Shared test fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from shyhurricane.forwarding.forwarder import DeliveryOutcome
from shyhurricane.forwarding.pipeline import ForwardingPipeline
from shyhurricane.forwarding.policy_store import PolicyStore
from shyhurricane.models.finding import (
    Confidence,
    Evidence,
    EvidenceRequest,
    EvidenceResponse,
    Finding,
    Severity,
)
from shyhurricane.models.traffic import Exchange, ExchangeRequest, ExchangeResponse


class MemoryPreferences:
    """In-memory stand-in for the preferences collaborator."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values = dict(values or {})
        self.writes: List[Any] = []

    def get_bool(self, key):
        value = self.values.get(key)
        return value if isinstance(value, bool) else None

    def get_string(self, key):
        value = self.values.get(key)
        return value if isinstance(value, str) else None

    def set_bool(self, key, value):
        self.values[key] = value
        self.writes.append((key, value))

    def set_string(self, key, value):
        self.values[key] = value
        self.writes.append((key, value))

    def set_many(self, values):
        self.values.update(values)
        self.writes.append(dict(values))


class RecordingForwarder:
    """Forwarder double that records every post instead of sending it."""

    def __init__(self):
        self.posts: List[Tuple[str, Dict[str, Any]]] = []

    def post(self, url, payload):
        self.posts.append((url, payload))
        return DeliveryOutcome.DELIVERED

    def get_stats(self):
        return {"posted": len(self.posts)}

    def shutdown(self):
        pass


@pytest.fixture
def preferences():
    return MemoryPreferences()


@pytest.fixture
def policy_store(preferences):
    """Policy store with defaults, except scope filtering turned off."""
    store = PolicyStore(preferences)
    store.load()
    store.set_only_in_scope(False)
    return store


@pytest.fixture
def recorder():
    return RecordingForwarder()


@pytest.fixture
def pipeline(policy_store, recorder):
    return ForwardingPipeline(policy_store, recorder)


def make_exchange(
    content_type: Optional[str] = "application/json",
    in_scope: bool = True,
    request_headers=(("Host", "example.com"), ("Accept", "*/*")),
    request_body: Optional[str] = None,
    response_body: Optional[str] = '{"ok": true}',
    status_code: int = 200,
) -> Exchange:
    response_headers = [("Server", "nginx")]
    if content_type is not None:
        response_headers.append(("Content-Type", content_type))

    return Exchange(
        request=ExchangeRequest(
            method="GET",
            url="https://example.com/api/items",
            headers=tuple(request_headers),
            in_scope=in_scope,
            read_text=lambda: request_body
        ),
        response=ExchangeResponse(
            status_code=status_code,
            headers=tuple(response_headers),
            read_text=lambda: response_body
        ),
        observed_at=datetime(2025, 3, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
    )


@pytest.fixture
def exchange_factory():
    return make_exchange


@pytest.fixture
def sample_finding():
    return Finding(
        name="SQL injection",
        base_url="https://example.com/search",
        severity=Severity.HIGH,
        confidence=Confidence.FIRM,
        background="SQL injection vulnerabilities arise when user input is used in queries.",
        detail="The q parameter appears to be vulnerable.",
        remediation="Use parameterized queries for the q parameter.",
        definition_remediation="Use parameterized queries throughout.",
        evidence=(
            Evidence(
                request=EvidenceRequest(method="GET", url="https://example.com/search?q=1'", in_scope=True),
                response=EvidenceResponse(status_code=500, reason="Internal Server Error", body="SQL syntax error"),
            ),
            Evidence(
                request=EvidenceRequest(method="POST", url="https://example.com/search", body="q=1%27", in_scope=False),
                response=EvidenceResponse(status_code=200, reason="OK", body=""),
            ),
        ),
    )
