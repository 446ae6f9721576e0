"""
HTTP exchange records
Raw exchanges come from the host proxy; traffic events are what gets indexed
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

# Ordered (name, value) pairs exactly as they appeared on the wire
HeaderPairs = Tuple[Tuple[str, str], ...]

# Returns the decoded body text; raises when the body is not text
TextReader = Callable[[], Optional[str]]


def _no_body() -> Optional[str]:
    return None


@dataclass(frozen=True)
class ExchangeRequest:
    """Request side of an observed exchange"""

    method: str
    url: str
    headers: HeaderPairs = ()
    in_scope: bool = False
    read_text: TextReader = field(default=_no_body, compare=False, repr=False)


@dataclass(frozen=True)
class ExchangeResponse:
    """Response side of an observed exchange"""

    status_code: int
    headers: HeaderPairs = ()
    read_text: TextReader = field(default=_no_body, compare=False, repr=False)

    @property
    def content_type(self) -> Optional[str]:
        """First Content-Type header value, if any"""
        for name, value in self.headers:
            if name.lower() == "content-type":
                return value
        return None


@dataclass(frozen=True)
class Exchange:
    """
    Host-neutral snapshot of one request/response pair

    Built by the proxy adapter and handed to the pipeline once.
    """

    request: ExchangeRequest
    response: ExchangeResponse
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class RequestRecord:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "method": self.method,
            "endpoint": self.url,
            "headers": dict(self.headers),
        }
        if self.body is not None:
            data["body"] = self.body
        return data


@dataclass(frozen=True)
class ResponseRecord:
    status_code: int
    headers: Dict[str, str]
    body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status_code": self.status_code,
            "headers": dict(self.headers),
        }
        if self.body is not None:
            data["body"] = self.body
        return data


@dataclass(frozen=True)
class TrafficEvent:
    """Normalized exchange in the shape the index endpoint expects"""

    timestamp: datetime
    request: RequestRecord
    response: ResponseRecord

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the /index wire object; absent bodies are left out"""
        return {
            "timestamp": format_instant(self.timestamp),
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
        }


def format_instant(moment: datetime) -> str:
    """ISO-8601 UTC instant with millisecond precision, e.g. 2025-01-31T12:00:00.000Z"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
