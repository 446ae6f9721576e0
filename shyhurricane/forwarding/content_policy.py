"""
Content-Type filtering for captured traffic

Binary payloads (media, fonts, archives, documents) are not useful to the
index, so exchanges whose response declares one of those types are skipped.
"""

from typing import Optional

# Prefixes that should always be skipped
SKIP_PREFIXES = (
    "audio/",
    "video/",
    "font/",
    "binary/",
)

# Exact content-types that should be skipped
SKIP_TYPES = frozenset({
    "application/octet-stream",
    "application/pdf",
    "application/x-pdf",
    "application/zip",
    "application/x-zip-compressed",
    "application/x-protobuf",
    "application/font-woff",
    "application/font-woff2",
    "application/vnd.ms-fontobject",
})


def should_skip(content_type: Optional[str]) -> bool:
    """
    Decide whether an exchange should be dropped based on its response type

    Args:
        content_type: Raw Content-Type header value, or None when absent

    Returns:
        True if the body is binary and the exchange should not be indexed
    """
    if not content_type:
        return False

    ct = content_type.lower()

    # Pass through JSON/XML subtypes (e.g. "application/vnd.api+json")
    if "+json" in ct or "+xml" in ct:
        return False

    if ct.startswith(SKIP_PREFIXES):
        return True

    # SVG is text and often worth indexing
    if ct.startswith("image/") and "svg" not in ct:
        return True

    return ct in SKIP_TYPES
