"""
Threshold and scope filtering for findings
"""

from typing import Iterable

from shyhurricane.models.finding import Confidence, Finding, Severity


def accepts(
    severity: Severity,
    confidence: Confidence,
    evidence_in_scope: Iterable[bool],
    only_in_scope: bool,
    min_severity: Severity,
    min_confidence: Confidence
) -> bool:
    """
    Decide whether a finding should be forwarded

    Args:
        severity: Severity of the finding
        confidence: Confidence of the finding
        evidence_in_scope: Scope flag of each evidence request, in order
        only_in_scope: Require at least one in-scope evidence request
        min_severity: Weakest severity that is still forwarded
        min_confidence: Weakest confidence that is still forwarded

    Returns:
        True if the finding meets both thresholds and the scope rule
    """
    if not confidence.at_least(min_confidence):
        return False

    if not severity.at_least(min_severity):
        return False

    # A finding without evidence has nothing in scope
    if only_in_scope and not any(evidence_in_scope):
        return False

    return True


def accepts_finding(finding: Finding, policy) -> bool:
    """Apply accepts() using the thresholds of a Policy snapshot"""
    return accepts(
        severity=finding.severity,
        confidence=finding.confidence,
        evidence_in_scope=finding.evidence_in_scope,
        only_in_scope=policy.only_in_scope,
        min_severity=policy.min_severity,
        min_confidence=policy.min_confidence,
    )
