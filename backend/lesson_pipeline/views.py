"""
API views for lesson pipeline.
"""
import json
import logging
import time

from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from lesson_pipeline.config import config
from lesson_pipeline.errors import SynthesisFailure
from lesson_pipeline.serializers import AudioRequestSerializer
from lesson_pipeline.services.speech import get_speech_synthesizer
from lesson_pipeline.types import VoiceOptions

logger = logging.getLogger(__name__)


def _voice_options(voice_name: str) -> VoiceOptions:
    """Explicit voices are used without the default voice's model name."""
    if not voice_name or voice_name == config.tts_voice_name:
        return get_speech_synthesizer().default_voice()
    return VoiceOptions(
        language_code=config.tts_language_code,
        name=voice_name,
        speaking_rate=config.tts_speaking_rate,
    )


def _parse_audio_request(request):
    """Returns (validated_data, error_response)."""
    if request.method != 'POST':
        return None, HttpResponseBadRequest("POST only")
    try:
        body = json.loads(request.body.decode('utf-8') or '{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, HttpResponseBadRequest("Invalid JSON")

    serializer = AudioRequestSerializer(data=body)
    if not serializer.is_valid():
        return None, JsonResponse({
            'success': False,
            'message': 'Le texte est requis (1 à 5000 caractères)',
            'errors': serializer.errors,
        }, status=400)
    return serializer.validated_data, None


@csrf_exempt
def audio_stream_view(request):
    """
    POST /api/v1/audio/stream

    Request: {"text": "...", "voice": "fr-FR-..."}   // voice optional
    Response: audio/mpeg body
    """
    data, error = _parse_audio_request(request)
    if error:
        return error

    try:
        audio = get_speech_synthesizer().synthesize(data['text'], _voice_options(data.get('voice', '')))
    except SynthesisFailure as e:
        logger.error(f"Audio stream failed: {e}")
        return JsonResponse({
            'success': False,
            'message': 'Erreur lors de la génération audio',
            'error': str(e),
        }, status=500)

    response = HttpResponse(audio, content_type='audio/mpeg')
    response['Content-Length'] = str(len(audio))
    response['Accept-Ranges'] = 'bytes'
    response['Cache-Control'] = 'public, max-age=3600'
    return response


@csrf_exempt
def audio_url_view(request):
    """
    POST /api/v1/audio/url

    Request: {"text": "...", "voice": "fr-FR-..."}   // voice optional
    Response: {"success": true, "data": {"audioUrl": "...", "text": "...", "voice": "..."}}
    """
    data, error = _parse_audio_request(request)
    if error:
        return error

    voice = _voice_options(data.get('voice', ''))
    try:
        url = get_speech_synthesizer().synthesize_to_url(
            data['text'], f"stream_{int(time.time() * 1000)}", voice,
        )
    except SynthesisFailure as e:
        logger.error(f"Audio URL generation failed: {e}")
        return JsonResponse({
            'success': False,
            'message': 'Erreur lors de la génération audio',
            'error': str(e),
        }, status=500)

    return JsonResponse({
        'success': True,
        'data': {'audioUrl': url, 'text': data['text'], 'voice': voice.name},
    })


def health_check(request):
    """GET /api/v1/health"""
    return JsonResponse({
        'ok': True,
        'llm_provider': config.llm_provider,
        'text_model_configured': bool(
            config.openai_api_key if config.llm_provider == 'openai' else config.gemini_api_key
        ),
        'tts_voice': config.tts_voice_name,
    })
