"""
Metadata parser for comic readme documents.

A readme is free text in which three labeled fields are recognized. Each
label must start a line (leading spaces/tabs allowed) and is followed by a
full-width or ASCII colon:

作者：Some Author
标签：action #romance #school
简介：Free text description that may span
several lines until the next author/tags label.

Everything else in the document is left alone. `rewrite_tags` edits only
the tags line so the rest of the file stays byte-identical.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class MetadataLabels:
    """Label tokens and delimiters of the readme format."""
    author: str = "作者"
    tags: str = "标签"
    description: str = "简介"
    # First delimiter is the one written back on rewrite
    delimiters: Tuple[str, ...] = ("：", ":")
    tag_separator: str = "#"
    tag_joiner: str = " #"


DEFAULT_LABELS = MetadataLabels()


@dataclass
class ComicMetadata:
    """Fields parsed from a readme document."""
    author: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict:
        data: Dict = {}
        if self.author is not None:
            data["author"] = self.author
        data["tags"] = list(self.tags)
        if self.description is not None:
            data["description"] = self.description
        return data


def _line_pattern(label: str, labels: MetadataLabels) -> re.Pattern:
    delimiters = "|".join(re.escape(d) for d in labels.delimiters)
    return re.compile(
        rf"^[ \t\ufeff]*(?P<label>{re.escape(label)}(?:{delimiters}))(?P<value>[^\r\n]*)",
        re.MULTILINE,
    )


def _boundary_pattern(labels: MetadataLabels) -> re.Pattern:
    """Lines that terminate a description block."""
    names = "|".join(re.escape(name) for name in (labels.author, labels.tags))
    delimiters = "|".join(re.escape(d) for d in labels.delimiters)
    return re.compile(rf"^[ \t\ufeff]*(?:{names})(?:{delimiters})", re.MULTILINE)


def split_tags(value: str, labels: MetadataLabels = DEFAULT_LABELS) -> List[str]:
    """Split a tags value on the separator, trimming and dropping empties."""
    return [piece.strip() for piece in value.split(labels.tag_separator) if piece.strip()]


def clean_tags(tags: Iterable[str]) -> List[str]:
    """Strip each tag and drop empty ones, keeping order and duplicates."""
    return [tag.strip() for tag in tags if tag and tag.strip()]


def validate_tags(tags: Iterable[str], labels: MetadataLabels = DEFAULT_LABELS) -> List[str]:
    """Clean tags and reject any that would not survive a rewrite and parse.

    Raises:
        ValueError: If a tag contains a line break or the tag separator
    """
    cleaned = clean_tags(tags)
    for tag in cleaned:
        if "\r" in tag or "\n" in tag:
            raise ValueError(f"Tag must not contain a line break: {tag!r}")
        if labels.tag_separator in tag:
            raise ValueError(
                f"Tag must not contain '{labels.tag_separator}': {tag!r}"
            )
    return cleaned


def _find_description(text: str, labels: MetadataLabels) -> Optional[Tuple[int, int]]:
    """Return the (start, end) span of the raw description block, if any.

    The span starts right after the description label and ends at the start
    of the next author/tags line or at the end of the text.
    """
    match = _line_pattern(labels.description, labels).search(text)
    if not match:
        return None

    start = match.end("label")
    boundary = _boundary_pattern(labels).search(text, start)
    end = boundary.start() if boundary else len(text)
    return start, end


def parse_metadata(content: Optional[str], labels: MetadataLabels = DEFAULT_LABELS) -> ComicMetadata:
    """Parse author, tags and description from a readme document.

    Args:
        content: Full text of the document (None or empty allowed)
        labels: Label tokens to recognize

    Returns:
        ComicMetadata; fields whose label is absent stay None/empty.
        Never raises on malformed input.

    Example:
        >>> meta = parse_metadata("作者：Kei\\n标签：a#b# c")
        >>> meta.author, meta.tags
        ('Kei', ['a', 'b', 'c'])
    """
    metadata = ComicMetadata()
    if not content:
        return metadata

    author_match = _line_pattern(labels.author, labels).search(content)
    if author_match:
        metadata.author = author_match.group("value").strip()

    tags_match = _line_pattern(labels.tags, labels).search(content)
    if tags_match:
        metadata.tags = split_tags(tags_match.group("value"), labels)

    span = _find_description(content, labels)
    if span:
        start, end = span
        metadata.description = content[start:end].strip()

    return metadata


def format_tags_line(tags: Iterable[str], labels: MetadataLabels = DEFAULT_LABELS) -> str:
    """Build the tags line written back into a document."""
    return f"{labels.tags}{labels.delimiters[0]}{labels.tag_joiner.join(tags)}"


def rewrite_tags(
    content: Optional[str],
    tags: Iterable[str],
    labels: MetadataLabels = DEFAULT_LABELS,
) -> str:
    """Replace, insert or remove the tags line of a readme document.

    Only the tags line changes; every other byte of the document is kept.

    - Non-empty tags replace an existing tags line in place. Without one,
      the line goes right after the description text (before any author
      line that follows it), or at the end of the document when there is
      no description.
    - Empty tags remove the tags line together with its line break.

    Args:
        content: Current document text (None or empty allowed)
        tags: New tags in order

    Returns:
        The rewritten document text

    Raises:
        ValueError: If a tag contains a line break or the tag separator
    """
    text = content or ""
    new_tags = validate_tags(tags, labels)
    tags_match = _line_pattern(labels.tags, labels).search(text)

    if not new_tags:
        if not tags_match:
            return text
        return _remove_line(text, tags_match.start(), tags_match.end())

    new_line = format_tags_line(new_tags, labels)

    if tags_match:
        return text[:tags_match.start("label")] + new_line + text[tags_match.end("value"):]

    span = _find_description(text, labels)
    if span:
        start, end = span
        insert_at = start + len(text[start:end].rstrip())
        return text[:insert_at] + "\n" + new_line + text[insert_at:]

    if not text or text.endswith("\n"):
        return text + new_line
    return text + "\n" + new_line


def _remove_line(text: str, start: int, end: int) -> str:
    """Cut text[start:end] plus one adjacent line break."""
    if text.startswith("\r\n", end):
        end += 2
    elif text.startswith("\n", end):
        end += 1
    elif text[:start].endswith("\r\n"):
        # last line: drop the break that precedes it
        start -= 2
    elif text[:start].endswith("\n"):
        start -= 1
    return text[:start] + text[end:]
