"""
Speech synthesizer service - Google Cloud Text-to-Speech.

Lesson audio is produced slot by slot ("intro", "section_0_intro",
"section_0_subsection_1", ..., "conclusion"); each buffer is handed to the
media store and only the resulting URL is kept.
"""
import base64
import binascii
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Set

from google.cloud import texttospeech

from lesson_pipeline.config import config
from lesson_pipeline.errors import MediaStoreError, SynthesisFailure
from lesson_pipeline.services.media_store import get_media_store
from lesson_pipeline.types import AudioTask, LessonPlan, VoiceOptions

logger = logging.getLogger(__name__)


def intro_text(title: str, description: str) -> str:
    return f"Bienvenue dans cette leçon sur {title}. {description}".strip()


def section_intro_text(section_title: str) -> str:
    return f"Nous allons maintenant aborder {section_title}"


def normalize_text(text: str) -> str:
    """Plain ASCII quotes, single spaces, no space before punctuation."""
    text = re.sub(r"[‘’`]", "'", text)
    text = re.sub(r'[“”«»]', '"', text)
    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'\s+([.,!?;:])', r'\1', text)
    return text.strip()


def load_credentials(raw: str):
    """
    Service account credentials from inline JSON or base64-encoded JSON.

    Returns None when raw is empty or unreadable, so the client falls back to
    application default credentials.
    """
    if not raw:
        return None

    info = None
    try:
        info = json.loads(raw)
    except json.JSONDecodeError:
        try:
            info = json.loads(base64.b64decode(raw).decode('utf-8'))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Could not parse Google Cloud credentials: {e}")
            return None

    from google.oauth2 import service_account
    return service_account.Credentials.from_service_account_info(info)


def build_audio_tasks(plan: LessonPlan) -> List[AudioTask]:
    """One task for the intro, each section intro, each subsection and the conclusion."""
    tasks = [AudioTask(key='intro', text=intro_text(plan.title, plan.description))]

    for i, section in enumerate(plan.sections):
        tasks.append(AudioTask(key=f"section_{i}_intro", text=section_intro_text(section.title)))
        for j, subsection in enumerate(section.subsections):
            tasks.append(AudioTask(key=f"section_{i}_subsection_{j}", text=subsection.content))

    if plan.conclusion:
        tasks.append(AudioTask(key='conclusion', text=plan.conclusion))
    return tasks


class SpeechSynthesizer:
    """Service for text-to-speech synthesis of lesson content"""

    def __init__(self, client=None, media_store=None, batch_size: Optional[int] = None):
        self._client = client
        self.media_store = media_store or get_media_store()
        self.batch_size = batch_size or config.audio_batch_size

    @property
    def client(self):
        if self._client is None:
            credentials = load_credentials(config.google_cloud_credentials)
            if credentials is not None:
                self._client = texttospeech.TextToSpeechClient(credentials=credentials)
            else:
                self._client = texttospeech.TextToSpeechClient()
        return self._client

    def default_voice(self) -> VoiceOptions:
        return VoiceOptions(
            language_code=config.tts_language_code,
            name=config.tts_voice_name,
            model_name=config.tts_model_name or None,
            speaking_rate=config.tts_speaking_rate,
        )

    def synthesize(self, text: str, voice: Optional[VoiceOptions] = None) -> bytes:
        """
        Synthesize text to MP3 bytes.

        Raises:
            SynthesisFailure: on any provider error or empty audio
        """
        voice = voice or self.default_voice()
        normalized = normalize_text(text or '')
        if not normalized:
            raise SynthesisFailure("Nothing to synthesize")

        voice_kwargs = {'language_code': voice.language_code, 'name': voice.name}
        if voice.model_name:
            voice_kwargs['model_name'] = voice.model_name

        try:
            response = self.client.synthesize_speech(
                input=texttospeech.SynthesisInput(text=normalized),
                voice=texttospeech.VoiceSelectionParams(**voice_kwargs),
                audio_config=texttospeech.AudioConfig(
                    audio_encoding=texttospeech.AudioEncoding.MP3,
                    sample_rate_hertz=config.tts_sample_rate_hertz,
                    speaking_rate=voice.speaking_rate,
                ),
            )
        except Exception as e:
            raise SynthesisFailure(f"Speech synthesis failed: {e}") from e

        if not response.audio_content:
            raise SynthesisFailure("No audio content generated")
        return response.audio_content

    def synthesize_to_url(self, text: str, name_hint: str, voice: Optional[VoiceOptions] = None) -> str:
        """Synthesize and store; returns the stored audio URL."""
        audio = self.synthesize(text, voice)
        try:
            return self.media_store.store_audio(audio, name_hint)
        except MediaStoreError as e:
            raise SynthesisFailure(f"Could not store audio '{name_hint}': {e}") from e

    def _run_task(self, task: AudioTask) -> Optional[str]:
        try:
            return self.synthesize_to_url(task.text, task.key)
        except SynthesisFailure as e:
            logger.warning(f"⚠️ Audio slot '{task.key}' skipped: {e}")
            return None

    def synthesize_lesson_audio(
        self,
        plan: LessonPlan,
        skip_keys: Optional[Set[str]] = None,
    ) -> Dict[str, str]:
        """
        Synthesize every audio slot of a lesson.

        Tasks run in sequential batches; tasks inside a batch run concurrently.
        Failed slots are left out of the returned mapping. Slots listed in
        skip_keys (already persisted) are not synthesized again.
        """
        skip_keys = skip_keys or set()
        tasks = [task for task in build_audio_tasks(plan) if task.key not in skip_keys]
        total_batches = (len(tasks) + self.batch_size - 1) // self.batch_size
        logger.info(f"Generating {len(tasks)} audio files in {total_batches} batches")

        audio_files: Dict[str, str] = {}
        for batch_number, start in enumerate(range(0, len(tasks), self.batch_size), 1):
            batch = tasks[start:start + self.batch_size]
            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                urls = list(executor.map(self._run_task, batch))

            for task, url in zip(batch, urls):
                if url:
                    audio_files[task.key] = url
            logger.info(f"✓ Audio batch {batch_number}/{total_batches} done")

        return audio_files


# Global service instance
_synthesizer = None


def get_speech_synthesizer() -> SpeechSynthesizer:
    """Get or create global speech synthesizer"""
    global _synthesizer
    if _synthesizer is None:
        _synthesizer = SpeechSynthesizer()
    return _synthesizer
