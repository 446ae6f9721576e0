"""
Header canonicalization for the index schema
"""

from typing import Dict, Iterable, Tuple


def canonicalize_headers(headers: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """
    Collapse HTTP headers into a single mapping

    Names are lower-cased; repeated headers are joined with ";" in the order
    they were seen. Keys keep first-seen order.

    Args:
        headers: Ordered (name, value) pairs, duplicates allowed

    Returns:
        Dictionary of lower-cased header name to merged value
    """
    merged: Dict[str, str] = {}
    for name, value in headers:
        key = name.lower()
        if key in merged:
            merged[key] = merged[key] + ";" + value
        else:
            merged[key] = value
    return merged
