"""Tests for PhotoService and the image pipeline (storage is mocked)."""
import io

import pytest
from PIL import Image

from app.services.errors import NotFoundError, PayloadTooLargeError, ValidationError
from app.utils.images import InvalidImageError, square_jpeg


def _png(width=1200, height=900, color=(200, 40, 90)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestSquareJpeg:

    def test_output_is_square_jpeg(self):
        out = square_jpeg(_png(), size=800, quality=85)
        img = Image.open(io.BytesIO(out))
        assert img.format == "JPEG"
        assert img.size == (800, 800)

    def test_small_images_are_upscaled(self):
        img = Image.open(io.BytesIO(square_jpeg(_png(50, 120), size=800)))
        assert img.size == (800, 800)

    def test_garbage_rejected(self):
        with pytest.raises(InvalidImageError):
            square_jpeg(b"definitely not an image")


class TestUpload:

    async def test_upload_appends_photo(self, db, make_user, photo_service, storage):
        user = await make_user()

        result = await photo_service.upload(user, _png(), "image/png", db)

        key = result["key"]
        assert key.startswith(f"photos/{user.id}/") and key.endswith(".jpg")
        assert result["order"] == 1
        assert result["total_photos"] == 1
        assert result["url"] == f"https://signed.example/{key}"
        path, data, content_type = storage.upload_file.call_args.args
        assert path == key
        assert content_type == "image/jpeg"
        assert Image.open(io.BytesIO(data)).size == (800, 800)
        assert user.photos[0]["key"] == key

    async def test_non_image_rejected(self, db, make_user, photo_service, storage):
        user = await make_user()
        with pytest.raises(ValidationError):
            await photo_service.upload(user, b"%PDF-1.4", "application/pdf", db)
        storage.upload_file.assert_not_called()

    async def test_unreadable_image_rejected(self, db, make_user, photo_service):
        user = await make_user()
        with pytest.raises(ValidationError):
            await photo_service.upload(user, b"not really a png", "image/png", db)

    async def test_oversize_rejected(self, db, make_user, photo_service):
        user = await make_user()
        photo_service.settings = photo_service.settings.model_copy(update={"MAX_PHOTO_BYTES": 100})
        with pytest.raises(PayloadTooLargeError):
            await photo_service.upload(user, _png(), "image/png", db)

    async def test_seventh_photo_rejected(self, db, make_user, photo_service):
        user = await make_user(photos=[
            {"key": f"photos/x/{i}.jpg", "order": i} for i in range(1, 7)
        ])
        with pytest.raises(ValidationError, match="Maximum 6 photos"):
            await photo_service.upload(user, _png(), "image/png", db)


    async def test_upload_many_checks_every_file_first(self, db, make_user, photo_service, storage):
        user = await make_user()
        with pytest.raises(ValidationError):
            await photo_service.upload_many(user, [(_png(), "image/png"), (b"%PDF", "application/pdf")], db)
        with pytest.raises(ValidationError, match="No files"):
            await photo_service.upload_many(user, [], db)
        storage.upload_file.assert_not_called()

        results = await photo_service.upload_many(user, [(_png(), "image/png"), (_png(), "image/jpeg")], db)

        assert [r["order"] for r in results] == [1, 2]
        assert [p["key"] for p in user.photos] == [r["key"] for r in results]


class TestReadAndDelete:

    async def test_urls_follow_order(self, make_user, photo_service):
        user = await make_user(photos=[
            {"key": "photos/u/b.jpg", "order": 2},
            {"key": "photos/u/a.jpg", "order": 1},
        ])
        assert photo_service.urls_for(user.photos) == [
            "https://signed.example/photos/u/a.jpg",
            "https://signed.example/photos/u/b.jpg",
        ]

    async def test_signing_failure_skips_photo(self, make_user, photo_service, storage):
        storage.generate_signed_url.side_effect = RuntimeError("no credentials")
        user = await make_user(photos=[{"key": "photos/u/a.jpg", "order": 1}])
        assert photo_service.urls_for(user.photos) == []

    async def test_delete_renumbers(self, db, make_user, photo_service, storage):
        user = await make_user(photos=[
            {"key": "photos/u/a.jpg", "order": 1},
            {"key": "photos/u/b.jpg", "order": 2},
            {"key": "photos/u/c.jpg", "order": 3},
        ])

        remaining = await photo_service.delete(user, "photos/u/a.jpg", db)

        assert remaining == 2
        assert [(p["key"], p["order"]) for p in user.photos] == [
            ("photos/u/b.jpg", 1),
            ("photos/u/c.jpg", 2),
        ]
        storage.delete_file.assert_called_once_with("photos/u/a.jpg")

    async def test_delete_survives_blob_failure(self, db, make_user, photo_service, storage):
        storage.delete_file.side_effect = RuntimeError("gone")
        user = await make_user(photos=[{"key": "photos/u/a.jpg", "order": 1}])
        assert await photo_service.delete(user, "photos/u/a.jpg", db) == 0

    async def test_delete_unknown_key(self, db, make_user, photo_service):
        user = await make_user(photos=[{"key": "photos/u/a.jpg", "order": 1}])
        with pytest.raises(NotFoundError):
            await photo_service.delete(user, "photos/u/zzz.jpg", db)
