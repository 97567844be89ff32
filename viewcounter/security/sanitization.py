"""Input sanitization for descriptive item fields."""
from __future__ import annotations

import bleach


def sanitize_text(value: str | None) -> str | None:
    """Strip markup from operator-supplied text.

    Titles and descriptions are rendered by the public player page, so every
    HTML tag is removed and surrounding whitespace is trimmed.
    """

    if value is None:
        return None

    cleaned = bleach.clean(value, tags=set(), attributes={}, strip=True)
    return cleaned.strip()
