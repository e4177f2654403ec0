"""Case-insensitive glob matching for allow-lists."""
import fnmatch
from typing import Iterable

WILDCARD = "*"


def matches(text: str, patterns: Iterable[str]) -> bool:
    """True if ``text`` matches any pattern.

    ``*`` alone matches everything. Other patterns use shell glob syntax
    (``*``, ``?``, ``[abc]``, ``[!abc]``) and ignore case. An empty pattern
    set matches nothing.
    """
    folded = text.casefold()
    for pattern in patterns:
        if pattern == WILDCARD:
            return True
        if fnmatch.fnmatchcase(folded, pattern.casefold()):
            return True
    return False
