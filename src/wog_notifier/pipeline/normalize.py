from __future__ import annotations

import unicodedata


def _keep(ch: str) -> bool:
    category = unicodedata.category(ch)
    return category[0] in {"L", "N"} or ch.isspace()


def normalize_text(text: str | None) -> str:
    """
    Canonical form used for keyword containment checks.

    Lower-cases, decomposes (NFKD) and drops combining marks, then turns every
    character that is not a letter, digit or whitespace into a single space.
    Whitespace runs are left as they are so the function stays idempotent.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", str(text).lower()).lower()
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return "".join(ch if _keep(ch) else " " for ch in text)
