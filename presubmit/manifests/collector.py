"""Deterministic discovery of YAML fragment files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class FragmentRule:
    """Selects fragment files by matching a regex against the full path string."""

    name: str
    pattern: str

    def matches(self, path: Path | str) -> bool:
        normalized = Path(path).as_posix()
        return re.fullmatch(self.pattern, normalized) is not None


YAML_FRAGMENTS = FragmentRule(name="yaml", pattern=r".*/[^/]*\.yaml")

# Two-digit ordering prefix followed by a word character, e.g. ``00-namespace.yaml``.
NUMBERED_YAML_FRAGMENTS = FragmentRule(
    name="numbered", pattern=r".*/[0-9][0-9]-\w[^/]*\.yaml"
)

_BUILTIN_RULES = {rule.name: rule for rule in (YAML_FRAGMENTS, NUMBERED_YAML_FRAGMENTS)}


def rule_for(name: str, pattern: Optional[str] = None) -> FragmentRule:
    """Return the built-in rule called ``name``, or a custom rule for ``pattern``."""
    if pattern:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid pattern for fragment rule {name!r}: {exc}") from exc
        return FragmentRule(name=name, pattern=pattern)
    try:
        return _BUILTIN_RULES[name]
    except KeyError:
        known = ", ".join(sorted(_BUILTIN_RULES))
        raise ValueError(f"Unknown fragment rule {name!r} (expected one of: {known})") from None


def collect_fragments(root: Path, rule: FragmentRule) -> List[Path]:
    """Return files under ``root`` matching ``rule``, sorted by path string."""
    if not root.is_dir():
        return []
    matches = [path for path in root.rglob("*") if path.is_file() and rule.matches(path)]
    return sorted(matches, key=str)


__all__ = [
    "FragmentRule",
    "NUMBERED_YAML_FRAGMENTS",
    "YAML_FRAGMENTS",
    "collect_fragments",
    "rule_for",
]
