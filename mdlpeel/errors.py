"""
mdlpeel Errors

Only programming errors and resource signals are raised. A message that
does not fit a hypothesis is not an error: it is recorded as a
StructuralException entry in the ParsedCorpus (see mdlpeel.segment).
"""

from __future__ import annotations

from typing import Any, Optional


class PeelError(Exception):
    """Base class for every error raised by mdlpeel."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class ContractViolation(PeelError):
    """A generator or parser broke its contract.

    Raised when a parser accepts a hypothesis it cannot decompose, crashes
    on input, drops a message or returns a lossy decomposition. This is a
    plugin bug, not malformed traffic, so it propagates out of infer().
    """


class InvalidHypothesis(PeelError, ValueError):
    """Hypothesis parameters that describe no valid grammar."""


class BudgetExceeded(PeelError):
    """A compression pass ran past its size or time budget.

    Internal signal: the scorer catches it and falls back to the
    entropy-only estimate.
    """


class CorpusFormatError(PeelError, ValueError):
    """An on-disk corpus could not be decoded."""


class ConfigurationError(PeelError, ValueError):
    """Invalid configuration value."""
