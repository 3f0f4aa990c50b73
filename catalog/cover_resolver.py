"""
Cover selection for comic title directories.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

IMAGE_EXTENSIONS = (".jpg", ".png")
FIRST_PAGE_NAME = "00000001.jpg"


def is_image_file(name: str) -> bool:
    """Check the extension case-insensitively against IMAGE_EXTENSIONS."""
    return name.lower().endswith(IMAGE_EXTENSIONS)


def list_images(names: Iterable[str]) -> List[str]:
    """Return the image file names sorted lexicographically."""
    return sorted(name for name in names if is_image_file(name))


def resolve_cover(names: Iterable[str]) -> Optional[str]:
    """Pick the cover image from a directory listing.

    The canonical first page wins wherever it appears in the listing;
    otherwise the first image in listing order is used.

    Args:
        names: File names in the title directory, in listing order

    Returns:
        The chosen file name, or None when there are no images
    """
    images = [name for name in names if is_image_file(name)]

    for name in images:
        if name.lower() == FIRST_PAGE_NAME:
            return name

    return images[0] if images else None
