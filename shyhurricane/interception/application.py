"""
Object graph assembly

Builds the policy store, forwarder, pipeline and addon from configuration.
"""

from typing import Iterable, Optional
import structlog

from shyhurricane.core.preferences import YamlPreferences
from shyhurricane.forwarding.forwarder import build_forwarder
from shyhurricane.forwarding.pipeline import ForwardingPipeline
from shyhurricane.forwarding.policy_store import PolicyStore
from .addon import ForwarderAddon
from .scope import ScopeMatcher

logger = structlog.get_logger()


def build_policy_store(config) -> PolicyStore:
    """Open the preferences file and load the persisted policy"""
    store = PolicyStore(YamlPreferences(config.forwarding.preferences_file))
    store.load()
    return store


def build_addon(config, scope: Optional[Iterable[str]] = None) -> ForwarderAddon:
    """
    Create a ready-to-add ForwarderAddon

    Args:
        config: Application configuration
        scope: Scope patterns overriding the configured ones
    """
    policy_store = build_policy_store(config)
    pipeline = ForwardingPipeline(policy_store, build_forwarder(config.forwarding))
    matcher = ScopeMatcher(config.proxy.scope if scope is None else scope)

    logger.debug("Addon assembled", scope=matcher.patterns)
    return ForwarderAddon(policy_store, pipeline, matcher)
