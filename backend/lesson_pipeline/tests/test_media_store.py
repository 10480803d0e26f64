"""
Tests for lesson_pipeline/services/media_store.py

Storage is a mock and downloads are patched; images are real Pillow
buffers so the fit/re-encode path actually runs.

Run with: python -m pytest lesson_pipeline/tests/test_media_store.py -v
"""
import unittest
from io import BytesIO
from unittest.mock import patch, MagicMock

import requests
from PIL import Image

from lesson_pipeline.errors import MediaStoreError
from lesson_pipeline.types import LessonImage, StoredAsset
from lesson_pipeline.services.media_store import MediaStore


# =============================================================================
# Test Fixtures
# =============================================================================

def make_png_bytes(size=(1200, 400), color=(30, 120, 60)) -> bytes:
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return buffer.getvalue()


def make_mock_storage() -> MagicMock:
    """Storage that echoes the requested path and serves it under /media/."""
    storage = MagicMock()
    storage.saved = {}

    def save(name, content):
        storage.saved[name] = content.read()
        return name

    storage.save.side_effect = save
    storage.url.side_effect = lambda name: f"/media/{name}"
    return storage


def make_download(content: bytes = None, error: Exception = None) -> MagicMock:
    response = MagicMock()
    response.content = content or b''
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


# =============================================================================
# Test Cases
# =============================================================================

class TestStoreImage(unittest.TestCase):
    """Tests for download + fit + save."""

    def setUp(self):
        self.storage = make_mock_storage()
        self.store = MediaStore(storage=self.storage)
        self.store.base_url = ''

    @patch('lesson_pipeline.services.media_store.requests.get')
    def test_fits_and_reencodes(self, mock_get):
        """Stored images should be re-encoded at the configured frame size."""
        mock_get.return_value = make_download(make_png_bytes())

        asset = self.store.store_image("https://upload.example/wide.png")

        self.assertIsInstance(asset, StoredAsset)
        self.assertEqual((asset.width, asset.height), self.store.size)
        self.assertTrue(asset.public_id.startswith('lessons/images/'))
        self.assertEqual(asset.url, f"/media/{asset.public_id}")

        saved = self.storage.saved[asset.public_id]
        with Image.open(BytesIO(saved)) as img:
            self.assertEqual(img.size, self.store.size)
            self.assertEqual(img.format, self.store.image_format)

    @patch('lesson_pipeline.services.media_store.requests.get')
    def test_public_url_uses_base_url(self, mock_get):
        """Relative storage URLs should be prefixed with the public base URL."""
        mock_get.return_value = make_download(make_png_bytes())
        self.store.base_url = 'https://cdn.example.com'

        asset = self.store.store_image("https://upload.example/a.png")

        self.assertTrue(asset.url.startswith('https://cdn.example.com/media/lessons/images/'))

    @patch('lesson_pipeline.services.media_store.requests.get')
    def test_download_failure_raises(self, mock_get):
        mock_get.return_value = make_download(error=requests.HTTPError("403"))
        with self.assertRaises(MediaStoreError):
            self.store.store_image("https://upload.example/forbidden.png")

    @patch('lesson_pipeline.services.media_store.requests.get')
    def test_undecodable_image_raises(self, mock_get):
        mock_get.return_value = make_download(b'<html>not an image</html>')
        with self.assertRaises(MediaStoreError):
            self.store.store_image("https://upload.example/page.html")


class TestStoreAudio(unittest.TestCase):
    """Tests for audio persistence."""

    def test_saves_mp3_under_audio_folder(self):
        storage = make_mock_storage()
        store = MediaStore(storage=storage)
        store.base_url = ''

        url = store.store_audio(b'ID3fake-mp3', 'section_0_intro')

        path = url[len('/media/'):]
        self.assertTrue(path.startswith('lessons/audio/section_0_intro_'))
        self.assertTrue(path.endswith('.mp3'))
        self.assertEqual(storage.saved[path], b'ID3fake-mp3')

    def test_empty_audio_raises(self):
        with self.assertRaises(MediaStoreError):
            MediaStore(storage=make_mock_storage()).store_audio(b'', 'intro')


class TestDeleteAsset(unittest.TestCase):

    def test_delete_existing_and_missing(self):
        storage = make_mock_storage()
        storage.exists.side_effect = lambda name: name == 'lessons/images/a.webp'
        store = MediaStore(storage=storage)

        self.assertTrue(store.delete_asset('lessons/images/a.webp'))
        self.assertFalse(store.delete_asset('lessons/images/missing.webp'))
        storage.delete.assert_called_once_with('lessons/images/a.webp')


class TestOptimizeMany(unittest.TestCase):
    """Tests for concurrent optimisation."""

    def test_failed_items_become_none(self):
        """Order should be kept and failures mapped to None."""
        store = MediaStore(storage=make_mock_storage())
        asset = StoredAsset(url='/media/ok.webp', public_id='ok.webp', width=800, height=600)

        def fake_store(url):
            if 'bad' in url:
                raise MediaStoreError("boom")
            return asset

        with patch.object(store, 'store_image', side_effect=fake_store):
            results = store.optimize_many([
                LessonImage(url='https://x/good1.jpg', title='g1'),
                LessonImage(url='https://x/bad.jpg', title='b'),
                LessonImage(url='https://x/good2.jpg', title='g2'),
            ])

        self.assertEqual(results, [asset, None, asset])

    @patch('PIL.Image.MAX_IMAGE_PIXELS', 1000)
    @patch('lesson_pipeline.services.media_store.requests.get')
    def test_oversized_image_becomes_none(self, mock_get):
        """A decompression bomb should not abort the rest of the batch."""
        payloads = {
            'https://x/huge.png': make_png_bytes(size=(1200, 400)),
            'https://x/small.png': make_png_bytes(size=(10, 10)),
        }
        mock_get.side_effect = lambda url, **kwargs: make_download(payloads[url])
        store = MediaStore(storage=make_mock_storage())

        results = store.optimize_many([
            LessonImage(url='https://x/huge.png', title='huge'),
            LessonImage(url='https://x/small.png', title='small'),
        ])

        self.assertIsNone(results[0])
        self.assertIsInstance(results[1], StoredAsset)

    def test_unexpected_error_becomes_none(self):
        """Errors outside MediaStoreError should also map to None."""
        store = MediaStore(storage=make_mock_storage())
        asset = StoredAsset(url='/media/ok.webp', public_id='ok.webp', width=800, height=600)

        def fake_store(url):
            if 'bad' in url:
                raise RuntimeError("storage backend exploded")
            return asset

        with patch.object(store, 'store_image', side_effect=fake_store):
            results = store.optimize_many([
                LessonImage(url='https://x/bad.jpg', title='b'),
                LessonImage(url='https://x/good.jpg', title='g'),
            ])

        self.assertEqual(results, [None, asset])

    def test_empty_list(self):
        self.assertEqual(MediaStore(storage=make_mock_storage()).optimize_many([]), [])


if __name__ == '__main__':
    unittest.main()
