"""
In-memory catalog index.

The index holds one immutable snapshot (records in scan order plus a
title lookup table). A rebuild builds the next snapshot off to the side and
publishes it with a single reference assignment, so a reader always sees
either the old catalog or the new one, never a mix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .metadata_parser import ComicMetadata


@dataclass
class TitleRecord:
    """One comic title directory."""
    title: str
    path: Path
    cover_ref: Optional[str] = None
    metadata: ComicMetadata = field(default_factory=ComicMetadata)

    def to_dict(self, media_prefix: str = "") -> Dict:
        """Serialize for the serving layer.

        Args:
            media_prefix: URL prefix prepended to the cover reference
        """
        return {
            "title": self.title,
            "path": str(self.path),
            "cover": f"{media_prefix}{self.cover_ref}" if self.cover_ref else None,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class CatalogPage:
    records: Tuple[TitleRecord, ...]
    total: int


class _Snapshot:
    __slots__ = ("records", "by_title")

    def __init__(self, records: Tuple[TitleRecord, ...]):
        by_title: Dict[str, TitleRecord] = {}
        for record in records:
            if record.title in by_title:
                raise ValueError(f"Duplicate title in catalog: {record.title}")
            by_title[record.title] = record
        self.records = records
        self.by_title = by_title


class CatalogIndex:
    """Holds the current catalog snapshot and answers lookups against it."""

    def __init__(self, records: Iterable[TitleRecord] = ()):
        self._snapshot = _Snapshot(tuple(records))

    def rebuild(self, records: Iterable[TitleRecord]) -> None:
        """Replace the whole catalog with `records`.

        Raises:
            ValueError: If two records share a title (the old catalog stays)
        """
        self._snapshot = _Snapshot(tuple(records))

    def all(self) -> Tuple[TitleRecord, ...]:
        return self._snapshot.records

    def count(self) -> int:
        return len(self._snapshot.records)

    def find_by_title(self, title: str) -> Optional[TitleRecord]:
        """Exact-match lookup; the title is not normalized."""
        return self._snapshot.by_title.get(title)

    def page(self, page: int, page_size: int) -> CatalogPage:
        """Return one 1-indexed page of records plus the total count.

        Pages outside the catalog (or non-positive arguments) come back
        empty rather than raising.
        """
        records = self._snapshot.records
        total = len(records)
        if page < 1 or page_size < 1:
            return CatalogPage(records=(), total=total)

        start = (page - 1) * page_size
        return CatalogPage(records=records[start:start + page_size], total=total)

    def unique_tags(self) -> List[str]:
        """All distinct tags across the catalog, in first-seen order."""
        seen: Dict[str, None] = {}
        for record in self._snapshot.records:
            for tag in record.metadata.tags:
                seen.setdefault(tag, None)
        return list(seen)
