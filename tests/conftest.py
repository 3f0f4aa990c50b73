"""Shared fixtures: real library trees laid out under tmp_path."""

from pathlib import Path
from typing import Dict, Union

import pytest

from catalog import CatalogService


def make_title(root: Path, title: str, files: Dict[str, Union[str, bytes]]) -> Path:
    """Create a title directory holding the given files."""
    directory = root / title
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        path = directory / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_bytes(content.encode("utf-8"))
    return directory


@pytest.fixture
def library(tmp_path):
    """A small library with the canonical 'My Title' scenario."""
    root = tmp_path / "Comics"
    root.mkdir()
    make_title(root, "My Title", {
        "00000002.jpg": b"page2",
        "00000001.jpg": b"page1",
        "readme.md": "标签：a#b#c",
    })
    make_title(root, "Second", {
        "cover.PNG": b"img",
        "README.txt": "作者：Kei\n标签：b #d\n简介：Two friends.\n",
    })
    make_title(root, "No Readme", {"01.jpg": b"img"})
    make_title(root, ".hidden", {"00000001.jpg": b"img"})
    (root / "stray.txt").write_text("not a title", encoding="utf-8")
    return root


@pytest.fixture
def service(library):
    svc = CatalogService(library, max_workers=2)
    svc.initialize()
    return svc
