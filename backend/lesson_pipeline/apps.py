import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class LessonPipelineConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'lesson_pipeline'
    verbose_name = 'Progressive Lesson Generation'

    def ready(self):
        from lesson_pipeline.config import config

        key = config.openai_api_key if config.llm_provider == 'openai' else config.gemini_api_key
        if not key:
            logger.warning(f"No API key configured for text provider '{config.llm_provider}'")
        if not config.google_cloud_credentials:
            logger.info("GOOGLE_CLOUD_CREDENTIALS not set, speech uses application default credentials")
