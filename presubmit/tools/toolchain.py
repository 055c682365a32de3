"""Resolved handles to the external binaries used by the pipeline."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from ..config import ToolsConfig
from .runner import ToolInvocationError

GO = "go"
GIT = "git"
BASH = "bash"
CONTROLLER_GEN = "controller-gen"
PO_DOCGEN = "po-docgen"

_INSTALL_HINTS = {
    CONTROLLER_GEN: "go install sigs.k8s.io/controller-tools/cmd/controller-gen@v0.7.0",
    PO_DOCGEN: "go install github.com/prometheus-operator/prometheus-operator/cmd/po-docgen",
}


class MissingToolError(ToolInvocationError):
    """Raised when a step needs a tool that could not be resolved."""

    def __init__(self, name: str, requested: str) -> None:
        hint = _INSTALL_HINTS.get(name)
        detail = f"required tool {name!r} not found on PATH (looked for {requested!r})"
        if hint:
            detail = f"{detail}; install it with `{hint}`"
        super().__init__([requested], None, detail=detail)
        self.tool = name


@dataclass(frozen=True)
class Toolchain:
    """Maps logical tool names to executable paths resolved up front."""

    paths: Mapping[str, Optional[str]]
    requested: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        tools: ToolsConfig,
        *,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> "Toolchain":
        requested: Dict[str, str] = {
            GO: tools.go,
            GIT: tools.git,
            BASH: tools.bash,
            CONTROLLER_GEN: tools.controller_gen,
            PO_DOCGEN: tools.po_docgen,
        }
        paths = {name: which(value) for name, value in requested.items()}
        return cls(paths=paths, requested=requested)

    def require(self, name: str) -> str:
        """Return the resolved path for ``name`` or raise ``MissingToolError``."""
        path = self.paths.get(name)
        if not path:
            raise MissingToolError(name, self.requested.get(name, name))
        return path


__all__ = [
    "BASH",
    "CONTROLLER_GEN",
    "GIT",
    "GO",
    "MissingToolError",
    "PO_DOCGEN",
    "Toolchain",
]
