"""CLI entrypoint for presubmit steps."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Sequence

from .config import ConfigError, load_config
from .logging import configure_logging
from .orchestrator import (
    STEP_NAMES,
    Orchestrator,
    UnsupportedStepError,
    VerificationFailure,
)
from .tools.runner import ToolInvocationError

USAGE = f"""usage: presubmit {' '.join(f'[{name}]' for name in STEP_NAMES)}
  presubmit executes presubmit tasks on the repository to prepare code
  before submitting changes. Running with no arguments runs every check
  (i.e. the 'all' subcommand).
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="presubmit",
        description="Regenerate derived artifacts and verify the repository before submitting changes.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--repo",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a .presubmit.yml file (defaults to the one at the repository root).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "steps",
        nargs="*",
        metavar="STEP",
        help=f"Steps to run in order ({', '.join(STEP_NAMES)}). Defaults to 'all'.",
    )
    return parser


def dispatch(orchestrator: Orchestrator, steps: Sequence[str]) -> List[str]:
    """Run each named step in order and return the names that were not recognised.

    An unknown name is reported with the usage text and skipped; the remaining
    steps still run. Failures inside a step propagate immediately.
    """
    unsupported: List[str] = []
    for step in steps or ["all"]:
        try:
            orchestrator.run_step(step)
        except UnsupportedStepError as exc:
            print(exc, file=sys.stderr)
            print(USAGE, file=sys.stderr)
            unsupported.append(step)
    return unsupported


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for presubmit."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        log_file=Path(args.log_file) if args.log_file else None,
    )

    repo_root = Path(args.repo).expanduser().resolve()
    try:
        config = load_config(Path(args.config) if args.config else repo_root)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    orchestrator = Orchestrator(repo_root, config)
    try:
        dispatch(orchestrator, args.steps)
    except VerificationFailure as exc:
        parser.exit(1, f"{exc}\n")
    except ToolInvocationError as exc:
        parser.exit(1, f"presubmit failed: {exc}\nRun with --verbose for more details.\n")
    except (OSError, ValueError) as exc:
        parser.exit(1, f"presubmit failed: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
