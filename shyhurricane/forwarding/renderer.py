"""
Markdown rendering for findings

Turns a Finding into the report document stored by the collection service.
Output is deterministic: the same finding always renders to the same text.
"""

from typing import List, Optional

from shyhurricane.models.finding import Body, Evidence, Finding

# Hard character limit for each evidence body
MAX_BODY_CHARS = 1024


def render_finding(finding: Finding) -> str:
    """
    Render a finding as a markdown report

    Sections, in order: heading, summary, detail, reproduction steps, solution.

    Raises:
        UnicodeDecodeError: if an evidence body is bytes that are not UTF-8
    """
    parts: List[str] = []
    parts.append(f"# {finding.title}\n\n")

    parts.append("**Summary**\n")
    parts.append(f"Severity: {finding.severity.name}\n")
    parts.append(f"Confidence: {finding.confidence.name}\n")
    parts.append(f"URL: `{finding.base_url}`\n")
    parts.append("\n")
    parts.append(f"{finding.background or ''}\n")

    if _not_blank(finding.detail):
        parts.append(f"{finding.detail}\n")

    parts.append("\n**Reproduction Steps**\n")
    for item in finding.evidence:
        parts.append(_render_evidence(item))

    parts.append("\n**Solution**\n")
    for remediation in (finding.remediation, finding.definition_remediation):
        if _not_blank(remediation):
            parts.append(f"\n{remediation}\n")

    return "".join(parts)


def _render_evidence(item: Evidence) -> str:
    request, response = item.request, item.response
    parts = [f"{request.method} {request.url}"]

    request_body = truncate(_as_text(request.body))
    if _not_blank(request_body):
        parts.append(f"\n{request_body}")

    parts.append("\n\n")
    parts.append(f"{response.status_code} {response.reason}")

    response_body = truncate(_as_text(response.body))
    if _not_blank(response_body):
        parts.append(f"\n{response_body}")

    parts.append("\n\n\n")
    return "".join(parts)


def truncate(text: Optional[str], limit: int = MAX_BODY_CHARS) -> Optional[str]:
    """Cut text to at most `limit` characters"""
    if text is None:
        return None
    return text[:limit]


def _as_text(body: Body) -> Optional[str]:
    if isinstance(body, bytes):
        return body.decode("utf-8")
    return body


def _not_blank(text: Optional[str]) -> bool:
    return text is not None and text.strip() != ""
