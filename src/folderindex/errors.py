"""Exception taxonomy shared by the indexing pipeline.

Only ``ConfigurationError`` and ``ProviderCallError`` ever reach a job's
``error`` phase. ``ParseError`` is recovered per file and ``JobCancelled``
is a control-flow signal, not a failure.
"""

from __future__ import annotations


class FolderIndexError(Exception):
    """Base class for all folderindex errors."""


class ConfigurationError(FolderIndexError):
    """No model configured, unknown provider, missing API key, or a bad config file."""


class ProviderCallError(FolderIndexError):
    """An embedding or chat capability call failed.

    Attributes:
        model: The model string the call was made against.
    """

    def __init__(self, message: str, model: str = "") -> None:
        super().__init__(message)
        self.model = model


class ParseError(FolderIndexError):
    """A single file could not be read or parsed into units."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to parse {path}: {reason}")
        self.path = path
        self.reason = reason


class JobCancelled(FolderIndexError):
    """Raised at a batch boundary once a job's cancellation token is set."""
