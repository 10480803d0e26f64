"""
Configuration for the lesson generation pipeline.
"""
import os
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration loaded from environment variables"""

    # Text model
    llm_provider: str = "gemini"  # 'gemini' or 'openai'
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    use_search_grounding: bool = True
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    # Planner retries
    planner_max_attempts: int = 5
    retry_base_delay_ms: int = 1000
    retry_max_jitter_ms: int = 1000

    # Wikipedia lookups
    wikipedia_rest_url: str = "https://fr.wikipedia.org/api/rest_v1"
    wikipedia_api_url: str = "https://fr.wikipedia.org/w/api.php"
    wikipedia_user_agent: str = "LessonPipeline/1.0 (educational lesson generator)"
    wikipedia_summary_timeout: int = 5
    wikipedia_candidate_timeout: int = 3
    wikipedia_search_limit: int = 5
    resolver_max_workers: int = 8

    # Text-to-speech
    google_cloud_credentials: str = ""
    tts_language_code: str = "fr-FR"
    tts_voice_name: str = "fr-FR-Chirp3-HD-Zubenelgenubi"
    tts_model_name: str = "gemini-2.5-flash-tts"
    tts_sample_rate_hertz: int = 44100
    tts_speaking_rate: float = 1.0
    audio_batch_size: int = 5

    # Media store
    image_width: int = 800
    image_height: int = 600
    image_quality: int = 80
    image_format: str = "WEBP"
    image_download_timeout: int = 15
    media_base_url: str = ""
    optimize_max_workers: int = 4

    # Background continuation
    background_max_workers: int = 2

    # Logging
    log_level: str = "INFO"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> AppConfig:
    """Load configuration from environment variables"""
    return AppConfig(
        # Text model (GOOGLE_AI_API_KEY is the name used by the live tutor)
        llm_provider=os.getenv('LLM_PROVIDER', 'gemini').lower(),
        gemini_api_key=os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_AI_API_KEY', ''),
        gemini_model=os.getenv('GEMINI_MODEL', 'gemini-2.5-flash'),
        use_search_grounding=_env_bool('GEMINI_SEARCH_GROUNDING', 'true'),
        openai_api_key=os.getenv('OPENAI_API_KEY', ''),
        openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o'),

        # Planner retries
        planner_max_attempts=int(os.getenv('PLANNER_MAX_ATTEMPTS', '5')),
        retry_base_delay_ms=int(os.getenv('RETRY_BASE_DELAY_MS', '1000')),
        retry_max_jitter_ms=int(os.getenv('RETRY_MAX_JITTER_MS', '1000')),

        # Wikipedia
        wikipedia_rest_url=os.getenv('WIKIPEDIA_REST_URL', 'https://fr.wikipedia.org/api/rest_v1'),
        wikipedia_api_url=os.getenv('WIKIPEDIA_API_URL', 'https://fr.wikipedia.org/w/api.php'),
        wikipedia_user_agent=os.getenv(
            'WIKIPEDIA_USER_AGENT', 'LessonPipeline/1.0 (educational lesson generator)'
        ),
        wikipedia_summary_timeout=int(os.getenv('WIKIPEDIA_SUMMARY_TIMEOUT', '5')),
        wikipedia_candidate_timeout=int(os.getenv('WIKIPEDIA_CANDIDATE_TIMEOUT', '3')),
        wikipedia_search_limit=int(os.getenv('WIKIPEDIA_SEARCH_LIMIT', '5')),
        resolver_max_workers=int(os.getenv('RESOLVER_MAX_WORKERS', '8')),

        # TTS
        google_cloud_credentials=(
            os.getenv('GOOGLE_CLOUD_CREDENTIALS')
            or os.getenv('GOOGLE_CLOUD_CREDENTIALS_BASE64', '')
        ),
        tts_language_code=os.getenv('TTS_LANGUAGE_CODE', 'fr-FR'),
        tts_voice_name=os.getenv('TTS_VOICE_NAME', 'fr-FR-Chirp3-HD-Zubenelgenubi'),
        tts_model_name=os.getenv('TTS_MODEL_NAME', 'gemini-2.5-flash-tts'),
        tts_sample_rate_hertz=int(os.getenv('TTS_SAMPLE_RATE_HERTZ', '44100')),
        tts_speaking_rate=float(os.getenv('TTS_SPEAKING_RATE', '1.0')),
        audio_batch_size=int(os.getenv('AUDIO_BATCH_SIZE', '5')),

        # Media store
        image_width=int(os.getenv('IMAGE_WIDTH', '800')),
        image_height=int(os.getenv('IMAGE_HEIGHT', '600')),
        image_quality=int(os.getenv('IMAGE_QUALITY', '80')),
        image_format=os.getenv('IMAGE_FORMAT', 'WEBP').upper(),
        image_download_timeout=int(os.getenv('IMAGE_DOWNLOAD_TIMEOUT', '15')),
        media_base_url=os.getenv('MEDIA_BASE_URL', ''),
        optimize_max_workers=int(os.getenv('OPTIMIZE_MAX_WORKERS', '4')),

        # Background
        background_max_workers=int(os.getenv('BACKGROUND_MAX_WORKERS', '2')),

        # Logging
        log_level=os.getenv('LOG_LEVEL', 'INFO'),
    )


# Global config instance
config = load_config()
