"""Post-processing for CRD YAMLs emitted by controller-gen."""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..logging import get_logger
from .collector import YAML_FRAGMENTS, collect_fragments
from .normalizer import SEPARATOR, split_lines


def clean_crd(text: str, boilerplate: str) -> str:
    """Drop a leading separator and the generated status block, then prepend boilerplate.

    controller-gen regenerates a ``status:`` subsection that does not belong in
    committed manifests (kubernetes-sigs/controller-tools#456), so the first
    top-level ``status:`` line and everything after it is removed.
    """
    header = boilerplate.rstrip("\n")
    if header and text.startswith(header):
        text = text[len(header):]

    lines = split_lines(text)
    # Only a leading separator is dropped; indented ``---`` inside block scalars is content.
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        if line == SEPARATOR:
            del lines[index]
        break

    for index, line in enumerate(lines):
        if line.startswith("status:"):
            lines = lines[:index]
            break

    body = "\n".join(lines).strip("\n")
    if not header:
        return f"{body}\n"
    return f"{header}\n{body}\n"


class CRDPostProcessor:
    """Rewrites every CRD fragment in a directory in place."""

    def __init__(self, boilerplate: str) -> None:
        self.boilerplate = boilerplate
        self.logger = get_logger("crd")

    def process_dir(self, crd_dir: Path) -> List[Path]:
        processed: List[Path] = []
        for path in collect_fragments(crd_dir, YAML_FRAGMENTS):
            original = path.read_text(encoding="utf-8")
            cleaned = clean_crd(original, self.boilerplate)
            if cleaned != original:
                path.write_text(cleaned, encoding="utf-8")
                self.logger.debug("Cleaned CRD %s", path)
            processed.append(path)
        return processed


__all__ = ["CRDPostProcessor", "clean_crd"]
