"""
Catalog service: owns the catalog index and keeps it in step with disk.

Usage:
    from catalog import CatalogService

    service = CatalogService(Path("Comics"))
    service.initialize()

    page = service.list_page(1, 10)
    record = service.get_by_title("My Title")
    service.update_tags("My Title", ["action", "school"])

Every tag update rewrites the readme and then rescans the whole library;
the index is never patched in place.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .builder import (
    DEFAULT_README_NAME,
    DEFAULT_SCAN_WORKERS,
    CatalogBuilder,
    find_readme,
    list_files,
    media_ref,
)
from .cover_resolver import list_images
from .errors import CatalogError, InvalidTagsError, NotFoundError, UpdateFailedError
from .index import CatalogIndex, CatalogPage, TitleRecord
from .metadata_parser import DEFAULT_LABELS, ComicMetadata, MetadataLabels, rewrite_tags, validate_tags

logger = logging.getLogger(__name__)


@dataclass
class TitleDetail:
    """A title with its ordered page images."""
    title: str
    images: List[str]
    metadata: ComicMetadata

    def to_dict(self, media_prefix: str = "") -> Dict:
        return {
            "title": self.title,
            "images": [f"{media_prefix}{ref}" for ref in self.images],
            "metadata": self.metadata.to_dict(),
        }


class CatalogService:
    """Scans the library into a CatalogIndex and applies tag updates."""

    def __init__(
        self,
        root: Path,
        labels: MetadataLabels = DEFAULT_LABELS,
        max_workers: int = DEFAULT_SCAN_WORKERS,
        index: Optional[CatalogIndex] = None,
    ):
        """Initialize catalog service.

        Args:
            root: Library root directory
            labels: Readme label tokens
            max_workers: Threads used while scanning
            index: Index to publish into (a fresh one by default)
        """
        self.builder = CatalogBuilder(root, labels=labels, max_workers=max_workers)
        self.labels = labels
        self.index = index if index is not None else CatalogIndex()
        self._rebuild_lock = threading.Lock()
        self._update_lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self.builder.root

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def initialize(self) -> int:
        """Build the catalog for the first time."""
        return self.refresh()

    def refresh(self) -> int:
        """Rescan the library and publish the result as the new catalog.

        Rebuilds are serialized. If the root cannot be listed the error is
        logged and the previous catalog stays published.

        Returns:
            Number of titles in the published catalog
        """
        with self._rebuild_lock:
            logger.info(f"Scanning comic library: {self.root}")
            try:
                records = self.builder.scan()
            except CatalogError as exc:
                logger.error(f"Library scan failed, keeping previous catalog: {exc}")
                return self.index.count()

            self.index.rebuild(records)
            logger.info(f"Comic catalog built with {len(records)} titles.")
            return len(records)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_count(self) -> int:
        return self.index.count()

    def list_page(self, page: int, page_size: int) -> CatalogPage:
        return self.index.page(page, page_size)

    def get_by_title(self, title: str) -> TitleRecord:
        """Look up a title.

        Raises:
            NotFoundError: If the title is not in the catalog
        """
        record = self.index.find_by_title(title)
        if record is None:
            raise NotFoundError(title)
        return record

    def list_detail(self, title: str) -> TitleDetail:
        """Return a title with its page images in lexicographic order.

        The image list is read from disk on each call; an unreadable
        directory gives an empty list.

        Raises:
            NotFoundError: If the title is not in the catalog
        """
        record = self.get_by_title(title)
        try:
            names = list_files(record.path)
        except OSError as exc:
            logger.warning(f"Cannot list images for '{title}' at {record.path}: {exc}")
            names = []

        images = [media_ref(record.title, name) for name in list_images(names)]
        return TitleDetail(title=record.title, images=images, metadata=record.metadata)

    def list_unique_tags(self) -> List[str]:
        return self.index.unique_tags()

    # ------------------------------------------------------------------
    # Tag updates
    # ------------------------------------------------------------------

    def update_tags(self, title: str, tags: Iterable[str]) -> Optional[TitleRecord]:
        """Rewrite the tags line of a title's readme, then rescan.

        The readme is the first file whose name starts with "readme" and
        ends in .txt/.md; a new readme.md is created when there is none.
        The file is replaced atomically.

        Args:
            title: Title to update (exact match)
            tags: New tags; an empty list removes the tags line

        Returns:
            The title's record after the rescan, or None if it disappeared

        Raises:
            InvalidTagsError: If a tag contains a line break or the tag
                separator (nothing written)
            NotFoundError: If the title is not in the catalog (nothing written)
            UpdateFailedError: If the readme cannot be read or written
        """
        try:
            new_tags = validate_tags(tags, self.labels)
        except ValueError as exc:
            logger.warning(f"Rejected tags for comic {title}: {exc}")
            raise InvalidTagsError(str(exc), title=title) from exc
        logger.info(f"Updating tags for comic: {title} with new tags: {', '.join(new_tags)}")

        with self._update_lock:
            record = self.index.find_by_title(title)
            if record is None:
                logger.warning(f"Comic not found in catalog: {title}")
                raise NotFoundError(title)

            readme_path = self._locate_readme(record)
            content = self._read_readme(record, readme_path)
            updated = rewrite_tags(content, new_tags, self.labels)
            self._write_atomic(record, readme_path, updated)
            logger.info(f"Successfully updated readme file: {readme_path}")

            self.refresh()
            return self.index.find_by_title(title)

    def set_tags(self, title: str, tags: Iterable[str]) -> Optional[TitleRecord]:
        return self.update_tags(title, tags)

    def _locate_readme(self, record: TitleRecord) -> Path:
        try:
            names = list_files(record.path)
        except OSError as exc:
            logger.error(f"Cannot list directory for '{record.title}': {exc}")
            raise UpdateFailedError(
                f"Cannot list directory: {exc}", title=record.title, path=record.path
            ) from exc

        readme = find_readme(names)
        if readme:
            logger.debug(f"Readme file found: {readme}")
            return record.path / readme

        logger.info(f"No readme file found for comic: {record.title}. Creating {DEFAULT_README_NAME}.")
        return record.path / DEFAULT_README_NAME

    def _read_readme(self, record: TitleRecord, path: Path) -> str:
        if not path.exists():
            return ""
        try:
            # newline="" keeps CRLF line endings byte-identical on write-back
            with open(path, "r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except (OSError, UnicodeError) as exc:
            logger.error(f"Error reading readme for '{record.title}': {exc}")
            raise UpdateFailedError(
                f"Cannot read readme: {exc}", title=record.title, path=path
            ) from exc

    def _write_atomic(self, record: TitleRecord, path: Path, content: str) -> None:
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                handle = os.fdopen(fd, "w", encoding="utf-8", newline="")
            except Exception:
                os.close(fd)
                raise
            with handle:
                handle.write(content)
            os.chmod(tmp_path, stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644)
            os.replace(tmp_path, path)
        except (OSError, UnicodeError) as exc:
            logger.error(f"Error writing readme for '{record.title}': {exc}")
            if tmp_path is not None:
                self._discard_temp(tmp_path)
            raise UpdateFailedError(
                f"Cannot write readme: {exc}", title=record.title, path=path
            ) from exc

    @staticmethod
    def _discard_temp(tmp_path: str) -> None:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Could not remove temporary file {tmp_path}: {exc}")
