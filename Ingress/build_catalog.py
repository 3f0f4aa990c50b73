#!/usr/bin/env python3
"""
Scan a comic library and report what the catalog sees.

This script:
1. Scans every title directory under the library root
2. Picks covers and parses readme metadata
3. Prints a summary of the catalog
4. Optionally rewrites the tags of one title

Usage:
    python Ingress/build_catalog.py
    python Ingress/build_catalog.py --root /path/to/Comics --verbose
    python Ingress/build_catalog.py --set-tags "My Title" action school
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from catalog import CatalogService, InvalidTagsError, NotFoundError, UpdateFailedError


BASE_DIR = Path(__file__).resolve().parents[1]
COMIC_DIR = Path(os.environ.get("COMIC_BASE_PATH", str(BASE_DIR / "Comics")))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Scan a comic library and summarize the catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Summarize the default library
    python Ingress/build_catalog.py

    # Scan another directory with more threads
    python Ingress/build_catalog.py --root /data/Comics --workers 8

    # Replace the tags of one title (no tags clears them)
    python Ingress/build_catalog.py --set-tags "My Title" action school
        """
    )

    parser.add_argument(
        "--root",
        type=Path,
        default=COMIC_DIR,
        help=f"Library root directory (default: {COMIC_DIR})"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Threads used while scanning (default: 4)"
    )

    parser.add_argument(
        "--set-tags",
        nargs="+",
        metavar=("TITLE", "TAG"),
        help="Rewrite the tags of TITLE, then rescan"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show every title"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.root.is_dir():
        print(f"\n✗ Error: Directory not found: {args.root}")
        return 1

    print("\n" + "=" * 70)
    print("Comic Catalog Builder")
    print("=" * 70)
    print(f"\nLibrary: {args.root}")

    service = CatalogService(args.root, max_workers=args.workers)
    service.initialize()

    if args.set_tags:
        title, tags = args.set_tags[0], args.set_tags[1:]
        try:
            record = service.set_tags(title, tags)
        except InvalidTagsError as e:
            print(f"\n✗ Error: Invalid tags: {e}")
            return 1
        except NotFoundError:
            print(f"\n✗ Error: Comic not found: {title}")
            return 1
        except UpdateFailedError as e:
            print(f"\n✗ Error: Could not update tags: {e}")
            return 1

        current = record.metadata.tags if record else tags
        print(f"\n✓ Tags for '{title}': {', '.join(current) or '(none)'}")

    records = service.index.all()
    with_cover = sum(1 for record in records if record.cover_ref)
    unique_tags = service.list_unique_tags()

    if args.verbose:
        print()
        for record in records:
            tags = ", ".join(record.metadata.tags) or "-"
            print(f"  • {record.title} (cover: {record.cover_ref or 'none'}, tags: {tags})")

    print("\n" + "=" * 70)
    print("CATALOG SCAN COMPLETE")
    print("=" * 70)
    print(f"  Titles: {len(records)}")
    print(f"  Titles with cover: {with_cover}")
    print(f"  Unique tags: {len(unique_tags)}")
    if unique_tags:
        print(f"    {', '.join(unique_tags[:20])}")
    print("=" * 70 + "\n")

    return 0


if __name__ == "__main__":
    sys.exit(main())
