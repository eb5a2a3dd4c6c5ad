# src/taskbot/tasks/title.py

from __future__ import annotations

import re

from .dates import DATE_PHRASE_PATTERNS
from .tags import TAG_RE

_WS_RE = re.compile(r"\s+")


def normalize_title(text: str) -> str:
    """
    Strip tags, date phrases and clock times from a message.

    The result may be empty; callers decide on a fallback.
    """
    if not text:
        return ""

    out = text
    # Removing one phrase can expose another ("12:00завтра"), so strip to a fixed point.
    while True:
        stripped = TAG_RE.sub(" ", out)
        for pattern in DATE_PHRASE_PATTERNS:
            stripped = pattern.sub(" ", stripped)
        stripped = _WS_RE.sub(" ", stripped).strip()
        if stripped == out:
            return stripped
        out = stripped
