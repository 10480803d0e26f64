from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.utils import timezone
from rest_framework.test import APITestCase

from lesson_pipeline.errors import GenerationFailure, SynthesisFailure
from lesson_pipeline.types import VoiceOptions

from .models import Lesson, LessonProgress, UserProfile


def mark_processing(lesson_id, profile=None):
    Lesson.objects.filter(pk=lesson_id).update(status=Lesson.Status.PROCESSING)


class LessonApiTests(APITestCase):
    def test_create_lesson_starts_generation(self):
        UserProfile.objects.create(device_id='dev-1', profile_type='pupil', education_level='Terminale')

        with patch('lessons.views.start_lesson_generation', side_effect=mark_processing) as mock_start:
            resp = self.client.post(
                '/api/v1/lessons',
                {'title': 'La photosynthèse'},
                format='json',
                HTTP_X_DEVICE_ID='dev-1',
            )

        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.data['success'])
        self.assertEqual(resp.data['data']['status'], 'processing')
        self.assertEqual(resp.data['data']['deviceId'], 'dev-1')

        lesson_id, profile = mock_start.call_args.args
        self.assertEqual(lesson_id, resp.data['data']['id'])
        self.assertEqual(profile.profile_type, 'pupil')
        self.assertEqual(profile.education_level, 'Terminale')

    def test_create_lesson_rejects_short_title(self):
        with patch('lessons.views.start_lesson_generation') as mock_start:
            resp = self.client.post('/api/v1/lessons', {'title': 'ab'}, format='json')

        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data['success'])
        mock_start.assert_not_called()
        self.assertEqual(Lesson.objects.count(), 0)

    def test_list_filters_by_device(self):
        Lesson.objects.create(title='Mine', device_id='dev-1')
        Lesson.objects.create(title='Other', device_id='dev-2')

        resp = self.client.get('/api/v1/lessons', HTTP_X_DEVICE_ID='dev-1')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual([l['title'] for l in resp.data['data']], ['Mine'])

    def test_detail_and_not_found(self):
        lesson = Lesson.objects.create(title='Les volcans', status=Lesson.Status.READY)

        resp = self.client.get(f'/api/v1/lessons/{lesson.id}')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['title'], 'Les volcans')

        resp = self.client.get('/api/v1/lessons/99999')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data['message'], 'Leçon non trouvée')

    def test_test_lesson_is_ready(self):
        resp = self.client.post('/api/v1/lessons/test', {}, format='json')

        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['data']['status'], 'ready')
        self.assertEqual(len(resp.data['data']['content']['sections']), 1)


class ProfileApiTests(APITestCase):
    def test_upsert_profile(self):
        payload = {
            'deviceId': 'dev-9',
            'profileType': 'student',
            'specialty': 'Biologie',
            'institutionName': 'UCAD',
            'country': 'Sénégal',
        }
        resp = self.client.post('/api/v1/profiles', payload, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['data']['institutionName'], 'UCAD')

        resp = self.client.post('/api/v1/profiles', {'deviceId': 'dev-9', 'studyYear': 'L3'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(UserProfile.objects.count(), 1)
        profile = UserProfile.objects.get(device_id='dev-9')
        self.assertEqual(profile.study_year, 'L3')
        self.assertEqual(profile.specialty, 'Biologie')

    def test_get_profile(self):
        UserProfile.objects.create(device_id='dev-3', profile_type='professional')

        resp = self.client.get('/api/v1/profiles/dev-3')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['profileType'], 'professional')

        resp = self.client.get('/api/v1/profiles/unknown')
        self.assertEqual(resp.status_code, 404)


class ProgressApiTests(APITestCase):
    def setUp(self):
        self.lesson = Lesson.objects.create(title='La photosynthèse', status=Lesson.Status.READY)
        self.url = f'/api/v1/lessons/{self.lesson.id}/progress'

    def test_device_header_required(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 400)

    def test_default_progress(self):
        resp = self.client.get(self.url, HTTP_X_DEVICE_ID='dev-1')
        self.assertEqual(resp.data['data'], {'currentStep': 0, 'totalSteps': 0, 'completed': False})

    def test_first_update_schedules_review_in_two_days(self):
        resp = self.client.put(
            self.url,
            {'currentSectionIndex': 2, 'completedSections': [1, 0, 1]},
            format='json',
            HTTP_X_DEVICE_ID='dev-1',
        )

        self.assertEqual(resp.status_code, 200)
        record = LessonProgress.objects.get(lesson=self.lesson, device_id='dev-1')
        self.assertEqual(record.current_section_index, 2)
        self.assertEqual(record.completed_sections, [0, 1])
        delta = record.next_review_at - record.last_reviewed_at
        self.assertEqual(delta, timedelta(days=2))

    def test_later_updates_follow_review_intervals(self):
        headers = {'HTTP_X_DEVICE_ID': 'dev-1'}
        for _ in range(3):
            self.client.put(self.url, {'completed': True}, format='json', **headers)

        record = LessonProgress.objects.get(lesson=self.lesson, device_id='dev-1')
        self.assertTrue(record.is_completed)
        self.assertEqual(record.review_count, 2)
        self.assertEqual(record.next_review_at - record.last_reviewed_at, timedelta(days=7))

    def test_progress_list(self):
        LessonProgress.objects.create(lesson=self.lesson, device_id='dev-1')
        LessonProgress.objects.create(lesson=self.lesson, device_id='dev-2')

        resp = self.client.get('/api/v1/progress', HTTP_X_DEVICE_ID='dev-1')

        self.assertEqual(len(resp.data['data']), 1)
        self.assertEqual(resp.data['data'][0]['deviceId'], 'dev-1')

    def test_due_for_review(self):
        record = LessonProgress.objects.create(
            lesson=self.lesson, device_id='dev-1', next_review_at=timezone.now() - timedelta(minutes=1),
        )
        self.assertTrue(record.is_due_for_review)


class StudyAidApiTests(APITestCase):
    def setUp(self):
        self.content = {
            'title': 'La photosynthèse',
            'sections': [{'id': 'sec-1', 'title': 'Définition', 'subsections': []}],
        }
        self.lesson = Lesson.objects.create(
            title='La photosynthèse', status=Lesson.Status.READY, content=self.content,
        )

    @patch('lessons.views.get_qa_generator')
    def test_generate_qa(self, mock_get):
        mock_get.return_value.generate_session.return_value = {'id': 1, 'items': []}

        resp = self.client.post(
            '/api/v1/qa/generate',
            {'lessonId': self.lesson.id, 'title': 'La photosynthèse', 'content': self.content},
            format='json',
        )

        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['data'], {'id': 1, 'items': []})

    @patch('lessons.views.get_quiz_generator')
    def test_generate_quiz_failure(self, mock_get):
        mock_get.return_value.generate_quiz.side_effect = GenerationFailure('quota')

        resp = self.client.post(
            '/api/v1/quiz/generate',
            {'lessonId': self.lesson.id, 'title': 'La photosynthèse', 'content': self.content},
            format='json',
        )

        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.data['success'])

    def test_generate_requires_content(self):
        resp = self.client.post(
            '/api/v1/quiz/generate', {'lessonId': self.lesson.id, 'title': 'X'}, format='json',
        )
        self.assertEqual(resp.status_code, 400)

    @patch('lessons.views.get_qa_generator')
    def test_ask_question(self, mock_get):
        mock_get.return_value.answer_question.return_value = 'Grâce à la chlorophylle.'

        resp = self.client.post(
            '/api/v1/qa/ask', {'lessonId': self.lesson.id, 'question': 'Comment ?'}, format='json',
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['answer'], 'Grâce à la chlorophylle.')

    @patch('lessons.views.get_qa_generator')
    def test_section_question_not_found(self, mock_get):
        mock_get.return_value.answer_section_question.side_effect = LookupError('missing')

        resp = self.client.post(
            f'/api/v1/lessons/{self.lesson.id}/sections/nope/questions', {'question': '?'}, format='json',
        )

        self.assertEqual(resp.status_code, 404)

    def test_sessions_and_quizzes_are_empty(self):
        self.assertEqual(self.client.get('/api/v1/qa/sessions').data['data'], [])
        self.assertEqual(self.client.get('/api/v1/quiz').data['data'], [])

    def test_suggestions(self):
        resp = self.client.get('/api/v1/suggestions', {'country': 'Sénégal'})
        self.assertIn('Université Cheikh Anta Diop (UCAD)', resp.data['data'])

        resp = self.client.get('/api/v1/suggestions', {'country': 'Atlantis'})
        self.assertEqual(resp.data['data'], [])


class AudioApiTests(APITestCase):
    def make_synthesizer(self):
        synthesizer = MagicMock()
        synthesizer.default_voice.return_value = VoiceOptions(language_code='fr-FR', name='fr-FR-Default')
        synthesizer.synthesize.return_value = b'ID3audio'
        synthesizer.synthesize_to_url.return_value = 'https://cdn.example/audio/x.mp3'
        return synthesizer

    @patch('lesson_pipeline.views.get_speech_synthesizer')
    def test_stream(self, mock_get):
        mock_get.return_value = self.make_synthesizer()

        resp = self.client.post('/api/v1/audio/stream', {'text': 'Bonjour'}, format='json')

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp['Content-Type'], 'audio/mpeg')
        self.assertEqual(resp.content, b'ID3audio')

    @patch('lesson_pipeline.views.get_speech_synthesizer')
    def test_url_with_explicit_voice(self, mock_get):
        synthesizer = self.make_synthesizer()
        mock_get.return_value = synthesizer

        resp = self.client.post(
            '/api/v1/audio/url', {'text': 'Bonjour', 'voice': 'fr-FR-Neural2-A'}, format='json',
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body['data']['audioUrl'], 'https://cdn.example/audio/x.mp3')
        self.assertEqual(body['data']['voice'], 'fr-FR-Neural2-A')
        voice = synthesizer.synthesize_to_url.call_args.args[2]
        self.assertIsNone(voice.model_name)

    @patch('lesson_pipeline.views.get_speech_synthesizer')
    def test_synthesis_failure(self, mock_get):
        synthesizer = self.make_synthesizer()
        synthesizer.synthesize.side_effect = SynthesisFailure('tts down')
        mock_get.return_value = synthesizer

        resp = self.client.post('/api/v1/audio/stream', {'text': 'Bonjour'}, format='json')

        self.assertEqual(resp.status_code, 500)

    def test_text_required(self):
        resp = self.client.post('/api/v1/audio/stream', {'text': ''}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_health(self):
        resp = self.client.get('/api/v1/health')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['ok'])
