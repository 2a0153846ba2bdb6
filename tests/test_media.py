"""Tests for the media library and media storage."""

import pytest

from travelcms.interfaces import LocalMediaStorage, MediaStorage
from travelcms.media import MediaStore
from travelcms.models import FileType


def media_payload(**overrides):
    payload = {
        "filename": "5f2c.jpg",
        "original_filename": "reef-sunrise.jpg",
        "file_path": "2025/03/5f2c.jpg",
        "file_size": 48_213,
        "mime_type": "image/jpeg",
        "width": 1600,
        "height": 900,
    }
    payload.update(overrides)
    return payload


class TestMediaStore:
    def test_create_infers_file_type(self, media):
        item = media.create_media(media_payload())

        assert item.file_type is FileType.IMAGE
        assert item.width == 1600
        assert media.get_media(item.id).original_filename == "reef-sunrise.jpg"

    def test_list_filters_and_search(self, media):
        media.create_media(media_payload())
        media.create_media(
            media_payload(
                filename="9a1e.pdf",
                original_filename="ferry-timetable.pdf",
                file_path="2025/03/9a1e.pdf",
                mime_type="application/pdf",
                width=None,
                height=None,
            )
        )

        assert media.list_media().total == 2
        assert media.list_media({"file_type": "document"}).items[0].original_filename == "ferry-timetable.pdf"
        assert media.list_media({"search": "reef"}).total == 1

    def test_list_newest_first(self, media):
        first = media.create_media(media_payload(filename="a.jpg"))
        second = media.create_media(media_payload(filename="b.jpg"))

        assert [item.id for item in media.list_media().items] == [second.id, first.id]

    def test_update_metadata(self, media):
        item = media.create_media(media_payload(alt_text="Old alt"))

        updated = media.update_media(item.id, {"caption": "Sunrise over the reef"})

        assert updated.caption == "Sunrise over the reef"
        assert updated.alt_text == "Old alt"
        assert media.update_media(404, {"caption": "x"}) is None

    def test_delete_removes_file(self, media, storage):
        item = media.create_media(media_payload())

        assert media.delete_media(item.id) is True

        assert storage.deleted == ["2025/03/5f2c.jpg"]
        assert media.get_media(item.id) is None
        assert media.delete_media(item.id) is False

    def test_delete_survives_storage_failure(self, db, failing_storage, log_messages):
        store = MediaStore(db, storage=failing_storage)
        item = store.create_media(media_payload())

        assert store.delete_media(item.id) is True

        assert store.get_media(item.id) is None
        assert any("was not removed" in message for message in log_messages)

    def test_default_storage(self, db):
        assert isinstance(MediaStore(db).storage, LocalMediaStorage)


class TestLocalMediaStorage:
    def test_protocol(self, tmp_path, storage):
        assert isinstance(LocalMediaStorage(tmp_path), MediaStorage)
        assert isinstance(storage, MediaStorage)

    def test_delete_existing_file(self, tmp_path):
        target = tmp_path / "2025" / "a.jpg"
        target.parent.mkdir()
        target.write_bytes(b"jpeg")
        storage = LocalMediaStorage(tmp_path)

        assert storage.exists("2025/a.jpg")
        assert storage.delete("/2025/a.jpg") is True
        assert not target.exists()
        assert storage.delete("2025/a.jpg") is False

    def test_path_cannot_escape_root(self, tmp_path):
        storage = LocalMediaStorage(tmp_path / "uploads")

        with pytest.raises(ValueError, match="escapes"):
            storage.delete("../secrets.txt")
