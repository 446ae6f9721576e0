"""
mitmproxy Integration

Binds the forwarding pipeline to a running mitmproxy instance.

Components:
- Addon: mitmproxy hooks and operator commands
- Adapters: flow and scanner JSON translation into plain records
- Scope: regular-expression target scope
- Proxy Server: mitmproxy lifecycle management
- Application: builds the configured object graph
"""

from .scope import ScopeMatcher
from .adapters import exchange_from_flow, finding_from_dict, load_findings_file
from .addon import ForwarderAddon
from .proxy_server import ProxyServer
from .application import build_addon

__all__ = [
    "ScopeMatcher",
    "exchange_from_flow",
    "finding_from_dict",
    "load_findings_file",
    "ForwarderAddon",
    "ProxyServer",
    "build_addon"
]
