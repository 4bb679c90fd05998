"""Tests for the gallery catalogue and its management actions."""

import json
import multiprocessing
import threading
from pathlib import Path

import pytest

from imagebed.config import Settings
from imagebed.gallery import GalleryStore
from imagebed.manage import apply_action
from imagebed.models import FailureKind, UploadData
from imagebed.storage import MemoryJsonStore


def _data(n: int) -> UploadData:
    return UploadData(url=f"https://img.example.com/{n}.jpg", file_name=f"file_{n}", size="1 KB")


def _seed(gallery: GalleryStore, categories):
    for n, category in enumerate(categories):
        assert gallery.append(gallery.record_for(_data(n), category)).ok
    return gallery.snapshot()


@pytest.fixture
def gallery(settings):
    return GalleryStore(settings)


def test_append_prepends_and_persists_pretty_json(gallery, settings):
    _seed(gallery, ["a", "b"])
    text = settings.gallery_file.read_text(encoding="utf-8")
    assert text.startswith("[\n    {")
    records = json.loads(text)
    assert [r["fileName"] for r in records] == ["file_1", "file_0"]
    assert set(records[0]) == {"id", "fileName", "url", "size", "uploadTime", "category"}


def test_blank_category_defaults(gallery):
    records = _seed(gallery, ["  "])
    assert records[0]["category"] == "uncategorized"


def test_append_at_cap_drops_only_the_oldest(settings):
    gallery = GalleryStore(settings, store=MemoryJsonStore())
    existing = [
        {"id": f"id{n}", "fileName": f"f{n}", "url": "u", "size": "1 B", "uploadTime": "t", "category": "c"}
        for n in range(1000)
    ]
    with gallery.store.update(gallery.key, []) as doc:
        doc.commit(existing)

    result = gallery.append(gallery.record_for(_data(1000), "new"))

    records = gallery.snapshot()
    assert result.ok
    assert len(records) == 1000
    assert records[0]["fileName"] == "file_1000"
    assert records[1]["id"] == "id0"
    assert records[-1]["id"] == "id998"


def test_delete_category_moves_only_matching_records(gallery):
    _seed(gallery, ["Promo", "Other", "Promo", "Other", "Promo"])

    result = gallery.delete_category("Promo", "uncategorized")

    assert result.ok
    assert result.value == {"moved": 3, "to": "uncategorized"}
    records = gallery.snapshot()
    assert len(records) == 5
    assert sorted(r["category"] for r in records) == ["Other", "Other"] + ["uncategorized"] * 3


def test_delete_category_blank_replacement_uses_default(gallery):
    _seed(gallery, ["Promo"])
    assert gallery.delete_category("Promo", "").value["to"] == "uncategorized"


def test_delete_missing_id_leaves_file_untouched(gallery, settings):
    _seed(gallery, ["a", "b"])
    before = settings.gallery_file.read_bytes()

    result = gallery.delete("does-not-exist")

    assert result.failure.kind is FailureKind.NOT_FOUND
    assert settings.gallery_file.read_bytes() == before


def test_delete_removes_exactly_one(gallery):
    records = _seed(gallery, ["a", "b", "c"])
    result = gallery.delete(records[1]["id"])
    assert result.value == {"removed": 1, "total": 2}
    assert [r["id"] for r in gallery.snapshot()] == [records[0]["id"], records[2]["id"]]


def test_set_category(gallery):
    records = _seed(gallery, ["a"])
    assert gallery.set_category(records[0]["id"], "Travel").value == {"id": records[0]["id"], "category": "Travel"}
    assert gallery.set_category(records[0]["id"], "").value["category"] == "uncategorized"
    assert gallery.set_category("nope", "x").failure.kind is FailureKind.NOT_FOUND


def test_rename_category(gallery):
    _seed(gallery, ["old", "old", "keep"])
    assert gallery.rename_category("old", "new").value == {"updated": 2}
    assert gallery.rename_category("old", "new").failure.kind is FailureKind.NO_CHANGES


def test_unknown_fields_survive_rewrites(gallery, settings):
    settings.gallery_file.write_text(
        json.dumps([{"id": "x", "category": "a", "fileName": "f", "extra": 1}]), encoding="utf-8"
    )
    gallery.set_category("x", "b")
    assert gallery.snapshot() == [{"id": "x", "category": "b", "fileName": "f", "extra": 1}]


def test_concurrent_appends_lose_nothing(settings):
    def worker(offset):
        # A fresh store per thread, as separate request handlers would have.
        gallery = GalleryStore(settings)
        for n in range(5):
            gallery.append(gallery.record_for(_data(offset * 100 + n), "c"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    records = json.loads(settings.gallery_file.read_text(encoding="utf-8"))
    assert len(records) == 30
    assert len({r["id"] for r in records}) == 30


def _append_from_process(gallery_file: str, offset: int) -> None:
    gallery = GalleryStore(Settings(gallery_file=Path(gallery_file), enable_logging=False, log_file=None))
    for n in range(5):
        assert gallery.append(gallery.record_for(_data(offset * 100 + n), "c")).ok


def test_appends_from_separate_processes_lose_nothing(settings):
    ctx = multiprocessing.get_context("spawn")
    workers = [ctx.Process(target=_append_from_process, args=(str(settings.gallery_file), i)) for i in range(4)]
    for p in workers:
        p.start()
    for p in workers:
        p.join(timeout=60)
        assert p.exitcode == 0

    records = json.loads(settings.gallery_file.read_text(encoding="utf-8"))
    assert len(records) == 20
    assert len({r["id"] for r in records}) == 20


def test_manage_actions(gallery):
    records = _seed(gallery, ["Promo", "Other"])

    assert apply_action(gallery, {}) == {"success": False, "message": "Missing action"}
    assert apply_action(gallery, {"action": "delete"})["message"] == "Missing id"
    assert apply_action(gallery, {"action": "explode"}) == {"success": False, "message": "Unknown action"}

    response = apply_action(gallery, {"action": "setCategory", "id": records[0]["id"], "category": "Travel"})
    assert response == {"success": True, "message": "Updated", "id": records[0]["id"], "category": "Travel"}

    response = apply_action(gallery, {"action": "renameCategory", "from": "Travel", "to": "Trips"})
    assert response == {"success": True, "message": "Renamed", "updated": 1}

    response = apply_action(gallery, {"action": "deleteCategory", "name": "Nothing"})
    assert response == {"success": False, "message": "No changes"}

    response = apply_action(gallery, {"action": "delete", "id": records[1]["id"]})
    assert response == {"success": True, "message": "Deleted", "removed": 1, "total": 1}
