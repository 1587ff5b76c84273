import io
import struct
import unittest
import zlib
from unittest.mock import patch

from PIL import Image

from recipebox.tests.base import ApiTestCase


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 80, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


def _png_chunk(kind: bytes, body: bytes) -> bytes:
    return (
        struct.pack(">I", len(body))
        + kind
        + body
        + struct.pack(">I", zlib.crc32(kind + body))
    )


def oversized_png_bytes() -> bytes:
    """A small PNG whose header declares 20000x20000 pixels."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00" * 64))
        + _png_chunk(b"IEND", b"")
    )


class PhotoApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.recipe = self.create_recipe(self.alice)

    def _upload(self, user, data=None, filename="dish.png", content_type="image/png"):
        return self.client.post(
            f"/api/recipes/{self.recipe['id']}/photos",
            files={"file": (filename, data if data is not None else png_bytes(), content_type)},
            headers=self.headers(user),
        )

    def test_upload_and_list(self):
        response = self._upload(self.alice)
        self.assertEqual(response.status_code, 201, response.text)
        photo = response.json()
        expected_path = f"alice/{self.recipe['id']}/{photo['id']}.png"
        self.assertEqual(photo["storage_path"], expected_path)
        self.assertIn(expected_path, self.storage.stored_objects)
        self.assertEqual(self.storage.content_types[expected_path], "image/png")
        self.assertIn("expires=3600", photo["url"])

        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}/photos", headers=self.headers(self.alice)
        )
        self.assertEqual([p["id"] for p in response.json()["photos"]], [photo["id"]])

    def test_heic_rejected(self):
        response = self._upload(
            self.alice, data=b"not really heic", filename="IMG_0001.HEIC",
            content_type="application/octet-stream",
        )
        self.assertEqual(response.status_code, 415)
        self.assertEqual(self.db.count_photos(), 0)

    def test_non_image_rejected(self):
        response = self._upload(self.alice, data=b"plain text", filename="notes.png")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.count_photos(), 0)

    def test_upload_over_size_limit(self):
        with patch("recipebox.routes.photos.MAX_PHOTO_BYTES", 16):
            response = self._upload(self.alice)
        self.assertEqual(response.status_code, 413)
        self.assertEqual(response.json()["detail"], "Photo is too large.")
        self.assertEqual(self.db.count_photos(), 0)

    def test_decompression_bomb_rejected(self):
        response = self._upload(self.alice, data=oversized_png_bytes())
        self.assertEqual(response.status_code, 413)
        self.assertEqual(
            response.json()["detail"], "Photo dimensions are too large."
        )
        self.assertEqual(self.db.count_photos(), 0)
        self.assertEqual(self.storage.stored_objects, {})

    def test_view_only_user_cannot_upload(self):
        self.client.post(
            f"/api/recipes/{self.recipe['id']}/shares",
            json={"email": "bob@example.com", "permission": "view"},
            headers=self.headers(self.alice),
        )
        self.assertEqual(self._upload(self.bob).status_code, 403)
        self.assertEqual(self._upload(self.carol).status_code, 404)

    def test_failed_upload_removes_row(self):
        with patch.object(
            self.storage, "upload_bytes", side_effect=RuntimeError("storage down")
        ):
            response = self._upload(self.alice)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(self.db.count_photos(), 0)

    def test_delete_clears_cover(self):
        photo = self._upload(self.alice).json()
        headers = self.headers(self.alice)
        response = self.client.patch(
            f"/api/recipes/{self.recipe['id']}",
            json={"cover_photo_id": photo["id"]},
            headers=headers,
        )
        self.assertEqual(response.json()["cover_photo_id"], photo["id"])
        self.assertIn(photo["storage_path"], response.json()["cover_photo_url"])

        response = self.client.delete(f"/api/photos/{photo['id']}", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(photo["storage_path"], self.storage.stored_objects)
        recipe = self.client.get(
            f"/api/recipes/{self.recipe['id']}", headers=headers
        ).json()
        self.assertIsNone(recipe["cover_photo_id"])

        response = self.client.delete(f"/api/photos/{photo['id']}", headers=headers)
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
