"""Combine a directory of YAML fragments into one multi-document manifest."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, List

from ..logging import get_logger
from .collector import FragmentRule, collect_fragments
from .normalizer import SEPARATOR, normalize_fragment

AUTOGENERATED_NOTICE = "# NOTE: This file is autogenerated."


class ManifestCombiner:
    """Writes boilerplate, a generated-file notice and normalized fragments to a manifest."""

    def __init__(self, boilerplate: str) -> None:
        self.boilerplate = boilerplate
        self.logger = get_logger("manifests")

    @classmethod
    def from_file(cls, boilerplate_path: Path) -> "ManifestCombiner":
        return cls(boilerplate_path.read_text(encoding="utf-8"))

    def header(self) -> str:
        boilerplate = self.boilerplate.rstrip("\n")
        return f"{boilerplate}\n\n{AUTOGENERATED_NOTICE}\n"

    def render(self, fragments: Iterable[str]) -> str:
        """Return the combined manifest text for raw fragment contents, in order."""
        body = "".join(normalize_fragment(text) for text in fragments)
        trailer = f"{SEPARATOR}\n"
        if body.endswith(trailer):
            body = body[: -len(trailer)]
        return self.header() + body

    def combine(self, source_dir: Path, rule: FragmentRule, dest_path: Path) -> List[Path]:
        """Overwrite ``dest_path`` with the combination of fragments in ``source_dir``."""
        fragments = collect_fragments(source_dir, rule)
        if not fragments:
            self.logger.warning(
                "No fragments matched %s under %s; writing header-only %s",
                rule.name,
                source_dir,
                dest_path,
            )
        content = self.render(path.read_text(encoding="utf-8") for path in fragments)
        _write_atomic(dest_path, content)
        self.logger.debug("Combined %d fragments into %s", len(fragments), dest_path)
        return fragments


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


__all__ = ["AUTOGENERATED_NOTICE", "ManifestCombiner"]
