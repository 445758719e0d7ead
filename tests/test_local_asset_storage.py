"""Tests for filesystem asset storage."""

import asyncio
import os

from photo_studio.adapters.local_asset_storage import LocalAssetStorage
from tests.conftest import PNG_BYTES


def test_upload_round_trip(tmp_path) -> None:
    storage = LocalAssetStorage.create(
        str(tmp_path / "uploads"), str(tmp_path / "generated")
    )

    name = asyncio.run(storage.save_upload("Me Photo.PNG", PNG_BYTES))
    source = asyncio.run(storage.read_source(name))

    assert name.endswith(".png")
    assert storage.upload_exists(name)
    assert not storage.upload_exists("other.png")
    assert source.data == PNG_BYTES
    assert source.mime_type == "image/png"


def test_unknown_extension_defaults_to_jpg(tmp_path) -> None:
    storage = LocalAssetStorage.create(
        str(tmp_path / "uploads"), str(tmp_path / "generated")
    )

    name = asyncio.run(storage.save_upload("camera", b"\xff\xd8\xffdata"))

    assert name.endswith(".jpg")


def test_generated_assets_are_listed_newest_first(tmp_path) -> None:
    storage = LocalAssetStorage.create(
        str(tmp_path / "uploads"), str(tmp_path / "generated")
    )

    older = asyncio.run(storage.save_generated("gemini-1.png", PNG_BYTES))
    asyncio.run(storage.save_generated("openai-2.png", PNG_BYTES))
    (tmp_path / "generated" / "notes.txt").write_text("skip me")
    (tmp_path / "generated" / ".hidden.png").write_bytes(PNG_BYTES)
    os.utime(older.path, (1_000_000, 1_000_000))

    listed = storage.list_generated()

    assert [entry.filename for entry in listed] == ["openai-2.png", "gemini-1.png"]
    assert listed[0].url == "/generated/openai-2.png"
    assert listed[0].size == len(PNG_BYTES)
    assert older.url == "/generated/gemini-1.png"
    assert storage.list_uploads() == []
