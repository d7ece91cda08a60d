"""
Exceptions for grid synchronization.
"""


class GridError(Exception):
    """Base exception for grid operations."""


class RemoteUnavailable(GridError):
    """Raised when the remote store cannot be reached or answers with an error."""


class DecodeMalformed(GridError):
    """Raised when a payload or a single wire record has the wrong shape."""


class InvalidTransition(GridError):
    """Raised when a case in a terminal state is asked to change."""
