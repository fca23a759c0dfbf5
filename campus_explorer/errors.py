"""Exception types raised at the service boundary."""

from __future__ import annotations


class ExplorerError(Exception):
    """Base class for campus_explorer errors."""


class InvalidInputError(ExplorerError, ValueError):
    """User input rejected before any state change.

    The message is meant to be shown to the user as-is.
    """
