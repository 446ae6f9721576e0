"""
Translation from host objects into the forwarder's plain records

mitmproxy flows become Exchanges; scanner output (JSON) becomes Findings.
"""

import base64
import json
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional
import structlog

from mitmproxy import http

from shyhurricane.models.finding import (
    Confidence,
    Evidence,
    EvidenceRequest,
    EvidenceResponse,
    Finding,
    Severity,
)
from shyhurricane.models.traffic import Exchange, ExchangeRequest, ExchangeResponse
from .scope import ScopeMatcher

logger = structlog.get_logger()


def exchange_from_flow(flow: http.HTTPFlow, scope: ScopeMatcher) -> Exchange:
    """
    Build an Exchange from a completed mitmproxy flow

    Bodies are decoded lazily with strict charset handling, so undecodable
    content raises when read and is left out by the pipeline.

    Args:
        flow: Flow with both request and response
        scope: Scope used to flag the request
    """
    request = flow.request
    response = flow.response
    url = request.pretty_url

    observed_at = datetime.now(timezone.utc)
    if response.timestamp_end:
        observed_at = datetime.fromtimestamp(response.timestamp_end, tz=timezone.utc)

    return Exchange(
        request=ExchangeRequest(
            method=request.method,
            url=url,
            headers=tuple(request.headers.items(multi=True)),
            in_scope=scope.is_in_scope(url),
            read_text=partial(request.get_text, strict=True)
        ),
        response=ExchangeResponse(
            status_code=response.status_code,
            headers=tuple(response.headers.items(multi=True)),
            read_text=partial(response.get_text, strict=True)
        ),
        observed_at=observed_at
    )


def finding_from_dict(data: Dict[str, Any], scope: Optional[ScopeMatcher] = None) -> Finding:
    """
    Build a Finding from scanner JSON

    Evidence bodies may be given as text ("body") or base64 ("body_base64");
    base64 bodies stay bytes until rendering. When an evidence request has no
    explicit "in_scope" flag and a scope is given, the scope decides.

    Raises:
        KeyError: if a required field is missing
        TypeError: if the finding or its evidence has the wrong JSON shape
        ValueError: for unknown severity or confidence names
    """
    _require(data, dict, "finding")

    evidence = []
    for item in _require(data.get("evidence") or [], list, "evidence"):
        _require(item, dict, "evidence item")
        request = _require(item["request"], dict, "evidence request")
        response = _require(item.get("response") or {}, dict, "evidence response")

        in_scope = request.get("in_scope")
        if in_scope is None:
            in_scope = scope.is_in_scope(request["url"]) if scope else False

        evidence.append(Evidence(
            request=EvidenceRequest(
                method=request.get("method", "GET"),
                url=request["url"],
                body=_body_from_dict(request),
                in_scope=bool(in_scope)
            ),
            response=EvidenceResponse(
                status_code=int(response.get("status_code", 0)),
                reason=response.get("reason", ""),
                body=_body_from_dict(response)
            )
        ))

    return Finding(
        name=data["name"],
        base_url=data["base_url"],
        severity=Severity.parse(data["severity"]),
        confidence=Confidence.parse(data["confidence"]),
        background=data.get("background"),
        detail=data.get("detail"),
        remediation=data.get("remediation"),
        definition_remediation=data.get("definition_remediation"),
        evidence=tuple(evidence)
    )


def _require(value, kind, what):
    if not isinstance(value, kind):
        raise TypeError(f"{what} must be a JSON {'object' if kind is dict else 'array'}, got {type(value).__name__}")
    return value


def _body_from_dict(data: Dict[str, Any]):
    if data.get("body_base64") is not None:
        return base64.b64decode(data["body_base64"])
    return data.get("body")


def load_findings_file(path: Path, scope: Optional[ScopeMatcher] = None) -> List[Finding]:
    """
    Load findings from a JSON file

    Accepts either a list of finding objects or an object with a "findings"
    list. Malformed entries are logged and skipped.

    Raises:
        OSError: if the file cannot be read
        ValueError: if the file is not valid JSON or holds no findings list
    """
    with open(path, 'r', encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("findings") or []

    if not isinstance(data, list):
        raise ValueError(f"Expected a list of findings, got {type(data).__name__}")

    findings = []
    for index, entry in enumerate(data):
        try:
            findings.append(finding_from_dict(entry, scope))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed finding", file=str(path), index=index, error=str(e))

    logger.info("Findings loaded", file=str(path), count=len(findings))
    return findings
