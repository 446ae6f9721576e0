"""
Security finding models
Findings are produced by a scanner next to the proxy and forwarded as reports
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

# Evidence bodies may still be raw bytes; they are decoded when rendered
Body = Optional[Union[str, bytes]]


class Severity(str, Enum):
    """Finding severity, most severe first"""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFORMATION = "INFORMATION"

    @property
    def rank(self) -> int:
        """Lower rank is more severe"""
        return _SEVERITY_RANK[self]

    def at_least(self, minimum: "Severity") -> bool:
        return self.rank <= minimum.rank

    @classmethod
    def parse(cls, name: str) -> "Severity":
        return _parse_member(cls, name)


class Confidence(str, Enum):
    """Scanner confidence in a finding, most certain first"""

    CERTAIN = "CERTAIN"
    FIRM = "FIRM"
    TENTATIVE = "TENTATIVE"

    @property
    def rank(self) -> int:
        """Lower rank is more confident"""
        return _CONFIDENCE_RANK[self]

    def at_least(self, minimum: "Confidence") -> bool:
        return self.rank <= minimum.rank

    @classmethod
    def parse(cls, name: str) -> "Confidence":
        return _parse_member(cls, name)


# Ordering tables, independent of member declaration order
_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFORMATION: 4,
}

_CONFIDENCE_RANK: Dict[Confidence, int] = {
    Confidence.CERTAIN: 0,
    Confidence.FIRM: 1,
    Confidence.TENTATIVE: 2,
}


def _parse_member(enum_cls, name):
    if isinstance(name, enum_cls):
        return name
    key = str(name).strip().upper()
    try:
        return enum_cls[key]
    except KeyError:
        choices = ", ".join(member.name for member in enum_cls)
        raise ValueError(f"Invalid {enum_cls.__name__.lower()} '{name}'. Choose from: {choices}") from None


@dataclass(frozen=True)
class EvidenceRequest:
    method: str
    url: str
    body: Body = None
    in_scope: bool = False


@dataclass(frozen=True)
class EvidenceResponse:
    status_code: int
    reason: str = ""
    body: Body = None


@dataclass(frozen=True)
class Evidence:
    """One request/response pair supporting a finding"""

    request: EvidenceRequest
    response: EvidenceResponse


@dataclass(frozen=True)
class Finding:
    """A structured security issue with its supporting evidence"""

    name: str
    base_url: str
    severity: Severity
    confidence: Confidence
    background: Optional[str] = None
    detail: Optional[str] = None

    # Issue-specific remediation, then the generic one from the issue definition
    remediation: Optional[str] = None
    definition_remediation: Optional[str] = None

    evidence: Tuple[Evidence, ...] = ()

    @property
    def title(self) -> str:
        return f"{self.name} at {self.base_url}"

    @property
    def evidence_in_scope(self) -> Tuple[bool, ...]:
        return tuple(item.request.in_scope for item in self.evidence)
