from __future__ import annotations

def norm_answer(s: str | None) -> str:
    """Trim surrounding whitespace and case-fold for answer comparison."""
    return (s or "").strip().casefold()
