#!/usr/bin/env python3
"""
Tests for CatalogService - scanning, lookups and the tag update workflow.
"""

import os
import threading

import pytest

from catalog import CatalogService, InvalidTagsError, NotFoundError, UpdateFailedError
from catalog.builder import CatalogBuilder

from conftest import make_title


def snapshot_files(root):
    """Map every file under root to its bytes."""
    files = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            with open(path, "rb") as handle:
                files[path] = handle.read()
    return files


def test_scan_skips_hidden_entries_and_files(service):
    titles = sorted(record.title for record in service.index.all())

    assert titles == ["My Title", "No Readme", "Second"]
    assert service.get_count() == 3


def test_scan_scenario_my_title(service):
    record = service.get_by_title("My Title")

    assert record.metadata.tags == ["a", "b", "c"]
    assert record.cover_ref == "My%20Title/00000001.jpg"
    assert record.path.is_absolute()


def test_scan_parses_readme_variants(service):
    second = service.get_by_title("Second")
    bare = service.get_by_title("No Readme")

    assert second.metadata.author == "Kei"
    assert second.metadata.tags == ["b", "d"]
    assert second.metadata.description == "Two friends."
    assert second.cover_ref == "Second/cover.PNG"
    assert bare.metadata.to_dict() == {"tags": []}
    assert bare.cover_ref == "No%20Readme/01.jpg"


def test_unreadable_readme_degrades_title(library):
    make_title(library, "Broken", {"00000001.jpg": b"img", "readme.txt": b"\xff\xfe\xfa bad"})
    service = CatalogService(library, max_workers=1)

    service.initialize()

    broken = service.get_by_title("Broken")
    assert broken.metadata.tags == []
    assert broken.metadata.author is None
    assert broken.cover_ref == "Broken/00000001.jpg"
    assert service.get_count() == 4


def test_title_without_images_has_no_cover(library):
    make_title(library, "Text Only", {"readme.md": "作者：X"})
    service = CatalogService(library)

    service.initialize()

    assert service.get_by_title("Text Only").cover_ref is None


def test_scan_order_matches_directory_listing(library):
    builder = CatalogBuilder(library, max_workers=3)
    expected = [path.name for path in builder.list_title_directories()]

    assert [record.title for record in builder.scan()] == expected


def test_get_by_title_not_found(service):
    with pytest.raises(NotFoundError) as info:
        service.get_by_title("Untitled")

    assert info.value.title == "Untitled"


def test_list_detail_orders_images(service):
    detail = service.list_detail("My Title")

    assert detail.images == ["My%20Title/00000001.jpg", "My%20Title/00000002.jpg"]
    assert detail.to_dict("/comics/")["images"][0] == "/comics/My%20Title/00000001.jpg"
    assert detail.metadata.tags == ["a", "b", "c"]


def test_list_detail_not_found(service):
    with pytest.raises(NotFoundError):
        service.list_detail("Untitled")


def test_list_unique_tags(service):
    tags = service.list_unique_tags()

    assert sorted(tags) == ["a", "b", "c", "d"]
    assert len(tags) == len(set(tags))


def test_list_page_beyond_end(service):
    page = service.list_page(5, 2)

    assert page.records == ()
    assert page.total == 3


def test_set_empty_tags_removes_tags_line(service, library):
    service.set_tags("My Title", [])

    assert (library / "My Title" / "readme.md").read_text(encoding="utf-8") == ""
    assert service.get_by_title("My Title").metadata.tags == []
    assert sorted(service.list_unique_tags()) == ["b", "d"]


def test_update_tags_rewrites_only_tags_line(service, library):
    readme = library / "Second" / "README.txt"

    record = service.update_tags("Second", ["new", " spaced ", ""])

    assert readme.read_text(encoding="utf-8") == "作者：Kei\n标签：new #spaced\n简介：Two friends.\n"
    assert record.metadata.tags == ["new", "spaced"]
    assert service.get_by_title("Second").metadata.tags == ["new", "spaced"]


def test_update_tags_creates_readme_when_missing(service, library):
    service.update_tags("No Readme", ["fresh"])

    created = library / "No Readme" / "readme.md"
    assert created.read_text(encoding="utf-8") == "标签：fresh"
    assert service.get_by_title("No Readme").metadata.tags == ["fresh"]
    assert not [name for name in os.listdir(library / "No Readme") if name.endswith(".tmp")]


def test_update_unknown_title_writes_nothing(service, library):
    before = snapshot_files(library)

    with pytest.raises(NotFoundError):
        service.set_tags("Untitled", ["x"])

    assert snapshot_files(library) == before


def test_update_tags_picks_up_other_disk_changes(service, library):
    make_title(library, "Added Later", {"a.jpg": b"img"})

    service.update_tags("My Title", ["a"])

    assert service.get_by_title("Added Later").cover_ref == "Added%20Later/a.jpg"


def test_write_failure_raises_and_leaves_file_intact(service, library, monkeypatch):
    readme = library / "Second" / "README.txt"
    original = readme.read_bytes()

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("catalog.service.os.replace", fail_replace)

    with pytest.raises(UpdateFailedError) as info:
        service.update_tags("Second", ["x"])

    assert info.value.title == "Second"
    assert info.value.path == readme.resolve()
    assert readme.read_bytes() == original
    assert not [name for name in os.listdir(library / "Second") if name.endswith(".tmp")]
    assert service.get_by_title("Second").metadata.tags == ["b", "d"]


def test_read_failure_raises_update_failed(service, library):
    (library / "Second" / "README.txt").write_bytes(b"\xff\xfe\xfa")

    with pytest.raises(UpdateFailedError):
        service.update_tags("Second", ["x"])


def test_refresh_keeps_catalog_when_root_missing(tmp_path, library):
    service = CatalogService(library)
    service.initialize()
    moved = tmp_path / "moved"
    library.rename(moved)

    assert service.refresh() == 3
    assert service.get_count() == 3


def test_initialize_missing_root_gives_empty_catalog(tmp_path):
    service = CatalogService(tmp_path / "nowhere")

    assert service.initialize() == 0
    assert service.list_unique_tags() == []


def test_concurrent_refreshes_publish_complete_catalogs(service):
    seen = []

    def reader():
        for _ in range(50):
            seen.append(len(service.index.all()))

    threads = [threading.Thread(target=service.refresh) for _ in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert set(seen) == {3}


def test_concurrent_tag_updates_are_serialized(service, library):
    threads = [
        threading.Thread(target=service.update_tags, args=("My Title", [f"tag{i}"]))
        for i in range(5)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    content = (library / "My Title" / "readme.md").read_text(encoding="utf-8")
    assert content.count("标签：") == 1
    assert service.get_by_title("My Title").metadata.tags == [content[len("标签："):]]


def test_non_utf8_image_name_does_not_abort_scan(library):
    title_dir = library / "No Readme"
    (title_dir / "01.jpg").unlink()
    (title_dir / os.fsdecode(b"\xff.jpg")).write_bytes(b"img")
    service = CatalogService(library)

    assert service.initialize() == 3
    assert service.get_by_title("No Readme").cover_ref == "No%20Readme/%FF.jpg"
    assert service.list_detail("No Readme").images == ["No%20Readme/%FF.jpg"]
    assert service.get_by_title("My Title").metadata.tags == ["a", "b", "c"]


def test_unexpected_record_error_degrades_only_that_title(library, monkeypatch):
    builder = CatalogBuilder(library, max_workers=2)
    build = builder._build_record

    def flaky_build(directory):
        if directory.name == "Second":
            raise ValueError("bad name")
        return build(directory)

    monkeypatch.setattr(builder, "_build_record", flaky_build)

    records = {record.title: record for record in builder.scan()}

    assert set(records) == {"My Title", "No Readme", "Second"}
    assert records["Second"].cover_ref is None
    assert records["Second"].metadata.tags == []
    assert records["My Title"].metadata.tags == ["a", "b", "c"]


@pytest.mark.parametrize("tags", [["ok\n作者：Injected"], ["c#"], ["a\r\nb"]])
def test_update_rejects_tags_that_break_the_tags_line(service, library, tags):
    before = snapshot_files(library)

    with pytest.raises(InvalidTagsError) as info:
        service.update_tags("My Title", tags)

    assert info.value.title == "My Title"
    assert snapshot_files(library) == before
    assert service.get_by_title("My Title").metadata.author is None
    assert service.get_by_title("My Title").metadata.tags == ["a", "b", "c"]


def test_fdopen_failure_closes_descriptor_and_removes_temp(service, library, monkeypatch):
    readme = library / "Second" / "README.txt"
    original = readme.read_bytes()
    closed = []
    real_close = os.close

    def fail_fdopen(fd, *args, **kwargs):
        raise OSError("fdopen failed")

    def tracking_close(fd):
        closed.append(fd)
        real_close(fd)

    monkeypatch.setattr("catalog.service.os.fdopen", fail_fdopen)
    monkeypatch.setattr("catalog.service.os.close", tracking_close)

    with pytest.raises(UpdateFailedError):
        service.update_tags("Second", ["x"])

    assert closed
    assert readme.read_bytes() == original
    assert not [name for name in os.listdir(library / "Second") if name.endswith(".tmp")]


def test_cleanup_failure_still_raises_update_failed(service, library, monkeypatch):
    def fail_replace(src, dst):
        raise OSError("disk full")

    def fail_unlink(path):
        raise PermissionError("read-only")

    monkeypatch.setattr("catalog.service.os.replace", fail_replace)
    monkeypatch.setattr("catalog.service.os.unlink", fail_unlink)

    with pytest.raises(UpdateFailedError) as info:
        service.update_tags("Second", ["x"])

    assert "disk full" in str(info.value)
    assert service.get_by_title("Second").metadata.tags == ["b", "d"]
