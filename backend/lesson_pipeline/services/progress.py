"""
Progress publisher - pushes lesson generation updates to websocket clients.

Events are sent to the channels group ``lesson_<id>`` and delivered by
``lessons.realtime.LessonUpdatesConsumer``. Publishing never raises: a
missing or failing channel layer is logged and ignored.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

EVENT_TYPE = 'lesson_update'


def lesson_group_name(lesson_id: int) -> str:
    return f"lesson_{lesson_id}"


class ProgressPublisher:
    """Publishes progress/ready/error events for a lesson"""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def send_update(
        self,
        lesson_id: int,
        status: str,
        progress: Optional[int],
        message: str,
        stage: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        event: Dict[str, Any] = {
            'type': EVENT_TYPE,
            'lessonId': lesson_id,
            'status': status,
            'stage': stage,
            'progress': progress,
            'message': message,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if data is not None:
            event['data'] = data

        layer = self.channel_layer
        if layer is None:
            logger.debug(f"No channel layer configured, dropping update for lesson {lesson_id}")
            return
        try:
            async_to_sync(layer.group_send)(lesson_group_name(lesson_id), event)
            logger.debug(f"Lesson {lesson_id}: {status} {progress} {message}")
        except Exception as e:
            logger.error(f"Failed to publish update for lesson {lesson_id}: {e}")

    def send_progress(self, lesson_id: int, progress: int, message: str, stage: Optional[str] = None) -> None:
        self.send_update(lesson_id, 'processing', progress, message, stage=stage)

    def send_ready(self, lesson_id: int, content: Dict[str, Any]) -> None:
        self.send_update(
            lesson_id, 'ready', 100, 'Leçon générée avec succès', stage='ready', data=content,
        )

    def send_error(self, lesson_id: int, error_message: str, stage: Optional[str] = None) -> None:
        self.send_update(lesson_id, 'error', None, error_message, stage=stage)


# Global publisher instance
_publisher = None


def get_progress_publisher() -> ProgressPublisher:
    """Get or create global progress publisher"""
    global _publisher
    if _publisher is None:
        _publisher = ProgressPublisher()
    return _publisher
