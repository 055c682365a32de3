"""Line-level cleanup applied to each fragment before combination."""

from __future__ import annotations

from typing import List

SEPARATOR = "---"


def split_lines(text: str) -> List[str]:
    """Split ``text`` on ``\\n`` only; other line-break characters are content."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def normalize_fragment(text: str) -> str:
    """Drop comment and empty lines, then terminate the fragment with ``---``."""
    kept: List[str] = [
        line for line in split_lines(text) if line and not line.startswith("#")
    ]
    kept.append(SEPARATOR)
    return "\n".join(kept) + "\n"


__all__ = ["SEPARATOR", "normalize_fragment", "split_lines"]
