"""
Error taxonomy for the comic catalog.

Every failure that leaves the catalog package is one of these kinds and
carries the title and path it concerns so it can be logged usefully.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class CatalogError(RuntimeError):
    """Base exception for catalog errors."""

    def __init__(
        self,
        message: str,
        title: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        super().__init__(message)
        self.title = title
        self.path = Path(path) if path is not None else None


class NotFoundError(CatalogError):
    """Raised when a title is not present in the catalog."""

    def __init__(self, title: str):
        super().__init__(f"Comic not found: {title}", title=title)


class ScanPartialFailure(CatalogError):
    """A single title could not be read during a scan.

    Raised while building one record; the scan catches it, logs it and
    keeps the title with degraded fields.
    """
    pass


class UpdateFailedError(CatalogError):
    """Raised when a metadata document cannot be read or written."""
    pass


class InvalidTagsError(CatalogError):
    """Raised when a tag cannot be stored on a single tags line."""
    pass
