"""Custom exception hierarchy for pymirror."""

from __future__ import annotations

from collections.abc import Iterable


class MirrorError(Exception):
    """Base exception for all pymirror errors."""


class MirrorConfigError(MirrorError):
    """Invalid or missing configuration.

    Also raised when the mirror reducer is not mounted where the configured
    ``get_mirror_state`` expects it, or when a selector is called without a
    required argument.
    """


class PathSpecError(MirrorError, ValueError):
    """A path spec could not be interpreted as a plain path or a query."""


class SubscriptionContractError(MirrorError, TypeError):
    """A subscription function returned something other than a list of path specs."""


class ConvergenceError(MirrorError):
    """A convergence fetch did not stabilize within the allowed number of rounds."""

    def __init__(
        self,
        message: str,
        *,
        rounds: int,
        pending_keys: Iterable[str] = (),
    ) -> None:
        self.rounds = rounds
        self.pending_keys = frozenset(pending_keys)
        super().__init__(message)
