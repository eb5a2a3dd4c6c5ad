# src/taskbot/tasks/tags.py

from __future__ import annotations

import re

# "#" directly followed by word characters (any alphabet, digits, underscore).
TAG_RE = re.compile(r"#(\w+)")


def extract_tags(text: str) -> list[str]:
    """Return tag names in order of appearance, without the leading '#'."""
    if not text:
        return []
    return TAG_RE.findall(text)
