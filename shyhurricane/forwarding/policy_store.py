"""
Operator policy for the forwarding pipeline

The policy is an immutable value. Updates build a new value and swap the
reference, so a reader that takes one snapshot per event never sees a mix of
old and new fields.
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional
import structlog

from shyhurricane.models.finding import Confidence, Severity

logger = structlog.get_logger()

INDEX_PATH = "/index"
FINDINGS_PATH = "/findings"

# Preference keys
PREF_ONLY_IN_SCOPE = "onlyInScope"
PREF_MCP_SERVER_URL = "mcpServerUrl"
PREF_MIN_CONF = "minConfidence"
PREF_MIN_SEV = "minSeverity"

DEFAULT_SERVER_URL = "http://localhost:8000"


@dataclass(frozen=True)
class Policy:
    """Thresholds and flags governing which events are forwarded"""

    only_in_scope: bool = True
    server_url: str = DEFAULT_SERVER_URL
    min_confidence: Confidence = Confidence.FIRM
    min_severity: Severity = Severity.INFORMATION

    @property
    def index_url(self) -> str:
        return self.server_url.rstrip("/") + INDEX_PATH

    @property
    def findings_url(self) -> str:
        return self.server_url.rstrip("/") + FINDINGS_PATH

    def to_dict(self) -> Dict[str, Any]:
        """Convert to preference-style keys for display"""
        return {
            PREF_ONLY_IN_SCOPE: self.only_in_scope,
            PREF_MCP_SERVER_URL: self.server_url,
            PREF_MIN_CONF: self.min_confidence.name,
            PREF_MIN_SEV: self.min_severity.name,
        }


class PolicyStore:
    """
    Holds the current Policy and persists changes

    Readers call snapshot() without locking. Writers are serialized so that
    concurrent setters do not lose each other's fields.
    """

    def __init__(self, preferences):
        """
        Initialize the policy store

        Args:
            preferences: Key/value collaborator with get_bool/get_string and set_many
        """
        self.preferences = preferences
        self.logger = logger.bind(component="policy_store")
        self._policy = Policy()
        self._write_lock = threading.Lock()

    def snapshot(self) -> Policy:
        """Current policy; take it once per event"""
        return self._policy

    def load(self) -> Policy:
        """Read persisted preferences, keeping defaults for absent or invalid values"""
        defaults = Policy()
        prefs = self.preferences

        only_in_scope = prefs.get_bool(PREF_ONLY_IN_SCOPE)
        server_url = prefs.get_string(PREF_MCP_SERVER_URL)

        policy = Policy(
            only_in_scope=defaults.only_in_scope if only_in_scope is None else only_in_scope,
            server_url=server_url or defaults.server_url,
            min_confidence=self._load_level(PREF_MIN_CONF, Confidence, defaults.min_confidence),
            min_severity=self._load_level(PREF_MIN_SEV, Severity, defaults.min_severity),
        )

        with self._write_lock:
            self._policy = policy

        self.logger.info("Policy loaded", **policy.to_dict())
        return policy

    def _load_level(self, key, enum_cls, default):
        name = self.preferences.get_string(key)
        if name is None:
            return default
        try:
            return enum_cls.parse(name)
        except ValueError as e:
            self.logger.warning("Ignoring invalid preference", key=key, error=str(e))
            return default

    def save(self, policy: Optional[Policy] = None):
        """
        Persist every policy field in one write

        Args:
            policy: Policy to persist; defaults to the current snapshot

        Raises:
            OSError: if the preferences cannot be written
        """
        policy = policy or self._policy
        self.preferences.set_many({
            PREF_ONLY_IN_SCOPE: policy.only_in_scope,
            PREF_MCP_SERVER_URL: policy.server_url,
            PREF_MIN_CONF: policy.min_confidence.name,
            PREF_MIN_SEV: policy.min_severity.name,
        })

    def update(self, **changes) -> Policy:
        """
        Replace one or more fields, persist them and swap the snapshot

        The snapshot only changes once the new policy has been saved.

        Raises:
            TypeError: for unknown field names
            OSError: if the preferences cannot be written
        """
        with self._write_lock:
            policy = replace(self._policy, **changes)
            self.save(policy)
            self._policy = policy

        self.logger.info("Policy updated", fields=sorted(changes))
        return policy

    def set_only_in_scope(self, value: bool) -> Policy:
        return self.update(only_in_scope=bool(value))

    def set_server_url(self, value: str) -> Policy:
        value = value.strip()
        if not value:
            raise ValueError("Server URL cannot be empty")
        return self.update(server_url=value)

    def set_min_confidence(self, value) -> Policy:
        return self.update(min_confidence=Confidence.parse(value))

    def set_min_severity(self, value) -> Policy:
        return self.update(min_severity=Severity.parse(value))

    def set_from_string(self, key: str, value: str) -> Policy:
        """
        Apply a setter chosen by preference key, with a textual value

        Used by operator commands, e.g. set_from_string("minSeverity", "high").

        Raises:
            ValueError: for unknown keys or unparseable values
        """
        setters = {
            PREF_ONLY_IN_SCOPE: lambda v: self.set_only_in_scope(parse_bool(v)),
            PREF_MCP_SERVER_URL: self.set_server_url,
            PREF_MIN_CONF: self.set_min_confidence,
            PREF_MIN_SEV: self.set_min_severity,
        }
        if key not in setters:
            raise ValueError(f"Unknown policy key '{key}'. Choose from: {', '.join(setters)}")
        return setters[key](value)


def parse_bool(value: str) -> bool:
    """Parse true/false style operator input"""
    normalized = str(value).strip().lower()
    if normalized in ("true", "yes", "on", "1"):
        return True
    if normalized in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"Expected true or false, got '{value}'")
