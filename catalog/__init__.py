"""
Catalog module for the comic library.

This module provides functionality for:
- Parsing and rewriting readme metadata (author, tags, description)
- Picking a cover image for each title
- Building the in-memory catalog from a library directory
- Querying titles and updating their tags

Library layout:
    Comics/
        My Title/
            00000001.jpg    - Page images (.jpg/.png)
            00000002.jpg
            readme.md       - Optional metadata document
        Another Title/
            ...

Metadata format (in readme.md / readme.txt):
    作者：Author Name
    标签：action #romance
    简介：Free text description

Usage:
    from catalog import CatalogService

    service = CatalogService(Path("Comics"))
    service.initialize()

    record = service.get_by_title("My Title")
    page = service.list_page(1, 10)
    service.update_tags("My Title", ["action", "school"])
"""

from .metadata_parser import (
    DEFAULT_LABELS,
    ComicMetadata,
    MetadataLabels,
    parse_metadata,
    rewrite_tags,
    validate_tags,
)
from .cover_resolver import IMAGE_EXTENSIONS, list_images, resolve_cover
from .errors import (
    CatalogError,
    InvalidTagsError,
    NotFoundError,
    ScanPartialFailure,
    UpdateFailedError,
)
from .index import CatalogIndex, CatalogPage, TitleRecord
from .builder import CatalogBuilder
from .service import CatalogService, TitleDetail

__all__ = [
    "DEFAULT_LABELS",
    "ComicMetadata",
    "MetadataLabels",
    "parse_metadata",
    "rewrite_tags",
    "validate_tags",
    "IMAGE_EXTENSIONS",
    "list_images",
    "resolve_cover",
    "CatalogError",
    "InvalidTagsError",
    "NotFoundError",
    "ScanPartialFailure",
    "UpdateFailedError",
    "CatalogIndex",
    "CatalogPage",
    "TitleRecord",
    "CatalogBuilder",
    "CatalogService",
    "TitleDetail",
]

__version__ = "1.0.0"
