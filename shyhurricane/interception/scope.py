"""
Target scope for intercepted traffic
"""

import re
from typing import Iterable, List, Pattern
import structlog

logger = structlog.get_logger()


class ScopeMatcher:
    """
    Decides whether a URL belongs to the engagement scope

    Scope is a list of regular expressions searched in the full URL
    (e.g. r"^https://([a-z0-9-]+\\.)*example\\.com/"). An empty scope matches
    nothing.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.logger = logger.bind(component="scope")
        self._patterns: List[Pattern] = []
        self.update(patterns)

    def update(self, patterns: Iterable[str]):
        """
        Replace the scope patterns

        Raises:
            ValueError: if a pattern is not a valid regular expression
        """
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                raise ValueError(f"Invalid scope pattern '{pattern}': {e}") from e

        self._patterns = compiled
        self.logger.debug("Scope updated", patterns=[p.pattern for p in compiled])

    @property
    def patterns(self) -> List[str]:
        return [p.pattern for p in self._patterns]

    def is_in_scope(self, url: str) -> bool:
        return any(p.search(url) for p in self._patterns)
