from __future__ import annotations

from typing import Iterable


def fuzzy_match(candidate: str, text: str) -> bool:
    """True when every character of `text` appears in `candidate` in order (case-insensitive)."""
    needle = text.lower()
    if not needle:
        return True
    i = 0
    for ch in candidate.lower():
        if ch == needle[i]:
            i += 1
            if i == len(needle):
                return True
    return False


def fuzzy_filter(items: Iterable[str], text: str | None) -> list[str]:
    """Keep items matching `text` as a subsequence, preserving input order."""
    return [item for item in items if fuzzy_match(item, text or "")]
