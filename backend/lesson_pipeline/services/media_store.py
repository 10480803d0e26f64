"""
Media store service - persists lesson images and audio to Django storage.

Images are downloaded, center-cropped to a fixed frame and re-encoded
(WebP by default) before being saved. Audio arrives already encoded by the
synthesizer (MP3, fixed sample rate) and is stored as-is.
"""
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import List, Optional
from urllib.parse import urljoin

import requests
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from PIL import Image, ImageOps, UnidentifiedImageError

from lesson_pipeline.config import config
from lesson_pipeline.errors import MediaStoreError
from lesson_pipeline.types import LessonImage, StoredAsset

logger = logging.getLogger(__name__)

IMAGE_FOLDER = 'lessons/images'
AUDIO_FOLDER = 'lessons/audio'

FORMAT_EXTENSIONS = {'WEBP': 'webp', 'JPEG': 'jpg', 'PNG': 'png'}


def _slugify(name_hint: str) -> str:
    slug = re.sub(r'[^a-zA-Z0-9_-]+', '_', name_hint or '').strip('_')
    return slug[:60] or 'asset'


class MediaStore:
    """Uploads and transforms lesson media"""

    def __init__(self, storage=None):
        self.storage = storage or default_storage
        self.size = (config.image_width, config.image_height)
        self.quality = config.image_quality
        self.image_format = config.image_format
        self.download_timeout = config.image_download_timeout
        self.base_url = config.media_base_url
        self.max_workers = config.optimize_max_workers

    def public_url(self, path: str) -> str:
        url = self.storage.url(path)
        if self.base_url and not url.startswith(('http://', 'https://')):
            return urljoin(self.base_url.rstrip('/') + '/', url.lstrip('/'))
        return url

    def _transform(self, raw: bytes) -> bytes:
        with Image.open(BytesIO(raw)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGBA' if 'transparency' in img.info else 'RGB')
            if self.image_format == 'JPEG' and img.mode == 'RGBA':
                img = img.convert('RGB')
            fitted = ImageOps.fit(img, self.size, method=Image.Resampling.LANCZOS)

            out = BytesIO()
            fitted.save(out, format=self.image_format, quality=self.quality)
            return out.getvalue()

    def store_image(self, source_url: str) -> StoredAsset:
        """
        Download an image, fit it to the configured frame and save it.

        Raises:
            MediaStoreError: if the download, decoding or save fails
        """
        try:
            response = requests.get(
                source_url,
                headers={'User-Agent': config.wikipedia_user_agent},
                timeout=self.download_timeout,
            )
            response.raise_for_status()
            data = self._transform(response.content)

            extension = FORMAT_EXTENSIONS.get(self.image_format, self.image_format.lower())
            path = self.storage.save(
                f"{IMAGE_FOLDER}/{uuid.uuid4().hex}.{extension}",
                ContentFile(data),
            )
        except (requests.RequestException, UnidentifiedImageError, Image.DecompressionBombError,
                OSError, ValueError) as e:
            raise MediaStoreError(f"Could not store image {source_url}: {e}") from e

        return StoredAsset(
            url=self.public_url(path),
            public_id=path,
            width=self.size[0],
            height=self.size[1],
        )

    def store_audio(self, data: bytes, name_hint: str) -> str:
        """Save an MP3 buffer and return its public URL."""
        if not data:
            raise MediaStoreError(f"Empty audio buffer for '{name_hint}'")
        try:
            path = self.storage.save(
                f"{AUDIO_FOLDER}/{_slugify(name_hint)}_{uuid.uuid4().hex[:8]}.mp3",
                ContentFile(data),
            )
        except OSError as e:
            raise MediaStoreError(f"Could not store audio '{name_hint}': {e}") from e
        return self.public_url(path)

    def delete_asset(self, public_id: str) -> bool:
        """Delete a stored asset. Returns False when it is missing or deletion fails."""
        try:
            if not self.storage.exists(public_id):
                return False
            self.storage.delete(public_id)
            return True
        except OSError as e:
            logger.error(f"Failed to delete asset {public_id}: {e}")
            return False

    def _optimize_one(self, image: LessonImage) -> Optional[StoredAsset]:
        try:
            return self.store_image(image.url)
        except MediaStoreError as e:
            logger.warning(f"⚠️ Optimization failed for '{image.title}': {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error optimizing '{image.title}': {e}", exc_info=True)
            return None

    def optimize_many(self, images: List[LessonImage]) -> List[Optional[StoredAsset]]:
        """Store images concurrently; a failed item becomes None."""
        if not images:
            return []

        workers = max(1, min(self.max_workers, len(images)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._optimize_one, images))

        logger.info(f"Optimized {sum(1 for r in results if r)}/{len(images)} images")
        return results


# Global service instance
_store = None


def get_media_store() -> MediaStore:
    """Get or create global media store"""
    global _store
    if _store is None:
        _store = MediaStore()
    return _store
