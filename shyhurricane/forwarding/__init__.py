"""
Selective Event Forwarding

Filters observed HTTP traffic and security findings against operator policy,
normalizes the accepted ones and POSTs them to a collection service.

Components:
- Content Policy: skips exchanges with binary response types
- Headers: canonical lower-cased header mapping
- Finding Policy: confidence/severity thresholds and scope
- Renderer: markdown report for a finding
- Forwarder: best-effort JSON POST, optional bounded dispatch
- Policy Store: immutable policy snapshot with persistence
- Pipeline: wires the above for each event
"""

from .content_policy import should_skip
from .headers import canonicalize_headers
from .finding_policy import accepts, accepts_finding
from .renderer import render_finding
from .forwarder import DeliveryOutcome, Forwarder, DispatchingForwarder, build_forwarder
from .policy_store import Policy, PolicyStore
from .pipeline import ForwardingPipeline

__all__ = [
    "should_skip",
    "canonicalize_headers",
    "accepts",
    "accepts_finding",
    "render_finding",
    "DeliveryOutcome",
    "Forwarder",
    "DispatchingForwarder",
    "build_forwarder",
    "Policy",
    "PolicyStore",
    "ForwardingPipeline"
]
