"""
Media resolver service - finds an illustrative image for a text query.

Lookups go to the Wikipedia REST summary endpoint first, then fall back to
a full-text search and try each candidate page in relevance order.
A miss is reported as ``None``; this service never raises.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from lesson_pipeline.config import config
from lesson_pipeline.types import LessonImage

logger = logging.getLogger(__name__)


class MediaResolver:
    """Resolves lesson image queries to Wikipedia thumbnails"""

    def __init__(self):
        self.rest_url = config.wikipedia_rest_url.rstrip('/')
        self.api_url = config.wikipedia_api_url
        self.headers = {'User-Agent': config.wikipedia_user_agent}
        self.summary_timeout = config.wikipedia_summary_timeout
        self.candidate_timeout = config.wikipedia_candidate_timeout
        self.search_limit = config.wikipedia_search_limit
        self.max_workers = config.resolver_max_workers

    def _fetch_summary(self, page_title: str, timeout: int) -> Optional[LessonImage]:
        """Fetch a page summary and return its thumbnail, if any."""
        url = f"{self.rest_url}/page/summary/{quote(page_title, safe='')}"
        response = requests.get(url, headers=self.headers, timeout=timeout)
        response.raise_for_status()
        data: Dict[str, Any] = response.json()

        thumbnail = data.get('thumbnail') or {}
        source = thumbnail.get('source')
        if not source:
            return None
        return LessonImage(
            url=source,
            title=data.get('title') or page_title,
            description=data.get('extract'),
        )

    def _search_titles(self, query: str) -> List[str]:
        params = {
            'action': 'query',
            'format': 'json',
            'list': 'search',
            'srsearch': query,
            'srlimit': self.search_limit,
        }
        response = requests.get(
            self.api_url,
            params=params,
            headers=self.headers,
            timeout=self.summary_timeout,
        )
        response.raise_for_status()
        results = (response.json().get('query') or {}).get('search') or []
        return [item['title'] for item in results[:self.search_limit] if item.get('title')]

    def resolve_image(self, query: str) -> Optional[LessonImage]:
        """
        Resolve one query to an image.

        Returns:
            LessonImage, or None when neither the direct page nor any of the
            search candidates carries a thumbnail
        """
        if not query or not query.strip():
            return None
        try:
            return self._resolve(query.strip())
        except Exception as e:
            logger.error(f"Image resolution failed for '{query}': {e}", exc_info=True)
            return None

    def _resolve(self, query: str) -> Optional[LessonImage]:
        logger.debug(f"Resolving image for '{query}'")

        try:
            image = self._fetch_summary(query, self.summary_timeout)
            if image:
                logger.debug(f"✓ Direct match for '{query}': {image.title}")
                return image
        except (requests.RequestException, ValueError) as e:
            logger.debug(f"Direct lookup failed for '{query}': {e}")

        try:
            candidates = self._search_titles(query)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Search failed for '{query}': {e}")
            return None

        for page_title in candidates:
            try:
                image = self._fetch_summary(page_title, self.candidate_timeout)
            except (requests.RequestException, ValueError) as e:
                logger.debug(f"Candidate '{page_title}' failed: {e}")
                continue
            if image:
                logger.debug(f"✓ Match via search for '{query}': {image.title}")
                return image

        logger.info(f"No image found for '{query}'")
        return None

    def resolve_many(self, queries: List[str]) -> List[Optional[LessonImage]]:
        """Resolve queries concurrently; results keep the input order."""
        if not queries:
            return []

        workers = max(1, min(self.max_workers, len(queries)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self.resolve_image, queries))

        found = sum(1 for image in results if image is not None)
        logger.info(f"Resolved {found}/{len(queries)} images")
        return results


# Global service instance
_resolver = None


def get_media_resolver() -> MediaResolver:
    """Get or create global media resolver"""
    global _resolver
    if _resolver is None:
        _resolver = MediaResolver()
    return _resolver
