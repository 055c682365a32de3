"""Subprocess execution for external generators and build tools."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

CommandRunner = Callable[..., str]


class ToolInvocationError(RuntimeError):
    """Raised when an external tool exits nonzero or cannot be started."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int | None,
        *,
        stderr: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr or ""
        rendered = " ".join(self.command)
        if detail:
            message = f"{rendered}: {detail}"
        else:
            message = f"{rendered} exited with status {returncode}"
        if self.stderr.strip():
            message = f"{message}\n{self.stderr.strip()}"
        super().__init__(message)


def run_command(
    args: Iterable[str],
    *,
    cwd: Path,
    capture_output: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run ``args`` in ``cwd`` and return stdout when ``capture_output`` is set."""
    command = [str(arg) for arg in args]
    try:
        completed = subprocess.run(
            command,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            check=True,
            text=True,
            capture_output=capture_output,
        )
    except FileNotFoundError as exc:
        raise ToolInvocationError(command, None, detail=f"command not found ({exc.filename})") from exc
    except subprocess.CalledProcessError as exc:
        raise ToolInvocationError(command, exc.returncode, stderr=exc.stderr) from exc
    return completed.stdout if capture_output else ""


__all__ = ["CommandRunner", "ToolInvocationError", "run_command"]
