"""Skip gate for expensive code generation, based on a fresh upstream checkout."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Dict

from .config import CLONE_FAILURE_POLICIES
from .logging import get_logger
from .tools.runner import CommandRunner, ToolInvocationError, run_command


class RegenGate:
    """Decides whether regeneration can be skipped for an unchanged API tree.

    The local subtree is compared with the same subtree of a freshly cloned
    reference repository. The clone lives in its own temporary directory and is
    removed once the check completes, whatever the outcome.

    When the clone itself fails (typically a network error) the configured
    policy applies: ``regenerate`` treats the tree as changed, ``skip`` treats
    it as unchanged.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        git: str = "git",
        on_clone_failure: str = "regenerate",
    ) -> None:
        if on_clone_failure not in CLONE_FAILURE_POLICIES:
            raise ValueError(f"Unsupported clone failure policy: {on_clone_failure!r}")
        self._runner = runner or run_command
        self.git = git
        self.on_clone_failure = on_clone_failure
        self.logger = get_logger("gate")

    def should_skip(self, local_subtree: Path, upstream_url: str, subtree: str) -> bool:
        """Return True iff ``local_subtree`` matches ``subtree`` in a fresh clone."""
        if not local_subtree.is_dir():
            self.logger.warning("%s is not a directory; regeneration required", local_subtree)
            return False
        with tempfile.TemporaryDirectory(prefix="presubmit-reference-") as tmp:
            workdir = Path(tmp)
            clone_dir = workdir / "reference"
            try:
                self._runner(
                    [self.git, "clone", "--depth", "1", "--quiet", upstream_url, str(clone_dir)],
                    cwd=workdir,
                    capture_output=True,
                )
            except ToolInvocationError as exc:
                skip = self.on_clone_failure == "skip"
                self.logger.warning(
                    "Could not clone %s (%s); %s",
                    upstream_url,
                    exc,
                    "skipping regeneration" if skip else "assuming changes and regenerating",
                )
                return skip

            identical = trees_identical(local_subtree, clone_dir / subtree)

        if identical:
            self.logger.info("%s matches %s; skipping regeneration", local_subtree, upstream_url)
        else:
            self.logger.info("%s differs from %s; regeneration required", local_subtree, upstream_url)
        return identical


def trees_identical(left: Path, right: Path) -> bool:
    """Return True when both trees hold the same relative file paths with equal bytes."""
    left_files = _snapshot(left)
    right_files = _snapshot(right)
    if left_files.keys() != right_files.keys():
        return False
    for relative, path in left_files.items():
        if path.read_bytes() != right_files[relative].read_bytes():
            return False
    return True


def _snapshot(root: Path) -> Dict[str, Path]:
    if not root.is_dir():
        return {}
    return {
        path.relative_to(root).as_posix(): path
        for path in root.rglob("*")
        if path.is_file()
    }


__all__ = ["RegenGate", "trees_identical"]
