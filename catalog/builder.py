"""
Catalog builder for the comic library.

Scans a library root once and builds one TitleRecord per title directory:
- the title is the directory name
- the cover is picked by cover_resolver from the directory listing
- metadata is parsed from the title's readme document

Titles are independent, so they are built in a thread pool; the result
keeps the directory scan order.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from .cover_resolver import resolve_cover
from .errors import CatalogError, ScanPartialFailure
from .index import TitleRecord
from .metadata_parser import DEFAULT_LABELS, ComicMetadata, MetadataLabels, parse_metadata

logger = logging.getLogger(__name__)

README_PREFIX = "readme"
README_EXTENSIONS = (".txt", ".md")
DEFAULT_README_NAME = "readme.md"
DEFAULT_SCAN_WORKERS = 4


def media_ref(title: str, filename: str) -> str:
    """URL-safe reference to a file under a title, relative to the library root."""
    # names that are not valid UTF-8 arrive surrogate-escaped from os.scandir
    return (
        f"{quote(title, safe='', errors='surrogateescape')}/"
        f"{quote(filename, safe='', errors='surrogateescape')}"
    )


def is_readme_file(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith(README_PREFIX) and lowered.endswith(README_EXTENSIONS)


def find_readme(names: List[str]) -> Optional[str]:
    """Return the first readme document name in `names`, or None."""
    for name in names:
        if is_readme_file(name):
            return name
    return None


def list_files(directory: Path) -> List[str]:
    """List regular file names in a directory, sorted.

    Raises:
        OSError: If the directory cannot be read
    """
    with os.scandir(directory) as entries:
        return sorted(entry.name for entry in entries if entry.is_file())


class CatalogBuilder:
    """Builds catalog records from a library directory tree."""

    def __init__(
        self,
        root: Path,
        labels: MetadataLabels = DEFAULT_LABELS,
        max_workers: int = DEFAULT_SCAN_WORKERS,
    ):
        """Initialize catalog builder.

        Args:
            root: Library root; each non-hidden subdirectory is one title
            labels: Readme label tokens
            max_workers: Threads used to build records (1 disables the pool)
        """
        self.root = Path(root).resolve()
        self.labels = labels
        self.max_workers = max(1, int(max_workers))

    def list_title_directories(self) -> List[Path]:
        """List title directories under the root, skipping hidden entries.

        Raises:
            CatalogError: If the root cannot be listed
        """
        try:
            with os.scandir(self.root) as entries:
                return [
                    Path(entry.path)
                    for entry in entries
                    if not entry.name.startswith(".") and entry.is_dir()
                ]
        except OSError as exc:
            raise CatalogError(f"Cannot list library root: {exc}", path=self.root) from exc

    def scan(self) -> List[TitleRecord]:
        """Build records for every title directory.

        Returns:
            Records in directory scan order

        Raises:
            CatalogError: If the root cannot be listed
        """
        directories = self.list_title_directories()
        logger.debug(f"Scanning {len(directories)} title directories under {self.root}")

        if self.max_workers == 1 or len(directories) <= 1:
            return [self.build_record(directory) for directory in directories]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.build_record, directories))

    def build_record(self, directory: Path) -> TitleRecord:
        """Build one record; unreadable parts degrade to empty fields."""
        try:
            return self._build_record(directory)
        except (OSError, ValueError) as exc:
            logger.warning(f"Degraded title '{directory.name}': cannot build record: {exc}")
            return TitleRecord(title=directory.name, path=directory)

    def _build_record(self, directory: Path) -> TitleRecord:
        title = directory.name
        record = TitleRecord(title=title, path=directory)

        try:
            names = self._list_title_files(directory)
        except ScanPartialFailure as exc:
            logger.warning(f"Degraded title '{title}': {exc}")
            return record

        cover = resolve_cover(names)
        if cover:
            record.cover_ref = media_ref(title, cover)

        try:
            record.metadata = self._read_metadata(directory, names)
        except ScanPartialFailure as exc:
            logger.warning(f"Degraded title '{title}': {exc}")

        return record

    def _list_title_files(self, directory: Path) -> List[str]:
        try:
            return list_files(directory)
        except OSError as exc:
            raise ScanPartialFailure(
                f"Cannot list directory: {exc}", title=directory.name, path=directory
            ) from exc

    def _read_metadata(self, directory: Path, names: List[str]) -> ComicMetadata:
        readme = find_readme(names)
        if not readme:
            return ComicMetadata()

        readme_path = directory / readme
        try:
            content = readme_path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise ScanPartialFailure(
                f"Cannot read readme: {exc}", title=directory.name, path=readme_path
            ) from exc

        return parse_metadata(content, self.labels)
