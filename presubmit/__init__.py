"""Presubmit automation for regenerating and verifying operator artifacts."""

__version__ = "0.1.0"
