"""Logging for presubmit steps.

Everything logs under the ``presubmit`` hierarchy. Console lines carry a
``[presubmit]`` prefix so they stand out among the output of ``go`` and the
generators, and each step opens with a ``>>>`` banner line.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "presubmit"
_CONSOLE_FORMAT = "[presubmit] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
STEP_BANNER = ">>>"


def get_logger(name: str | None = None) -> logging.Logger:
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def log_step(logger: logging.Logger, description: str) -> None:
    """Announce the start of a pipeline step, e.g. ``>>> regenerating CRD yamls``."""
    logger.info("%s %s", STEP_BANNER, description)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route presubmit logs to stderr and, when ``log_file`` is given, to a file.

    ``--verbose`` lowers the threshold to DEBUG, which includes every external
    command line. The file sink always records at DEBUG so a failed run can be
    inspected afterwards.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["STEP_BANNER", "configure_logging", "get_logger", "log_step"]
