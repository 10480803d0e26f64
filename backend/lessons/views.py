import logging
import uuid
from datetime import timedelta

from django.utils import timezone
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from lesson_pipeline.errors import GenerationFailure
from lesson_pipeline.pipelines.orchestrator import start_lesson_generation
from lesson_pipeline.serializers import (
    AskQuestionSerializer,
    SectionQuestionSerializer,
    StudyAidRequestSerializer,
    SuggestionRequestSerializer,
)
from lesson_pipeline.services.qa_generator import get_qa_generator
from lesson_pipeline.services.quiz_generator import get_quiz_generator

from .models import Lesson, LessonProgress, UserProfile, REVIEW_INTERVALS_DAYS
from .serializers import (
    LessonCreateSerializer,
    LessonProgressSerializer,
    LessonProgressUpdateSerializer,
    LessonSerializer,
    UserProfileSerializer,
    profile_context,
)
from .suggestions import get_suggestions

logger = logging.getLogger(__name__)

DEVICE_HEADER = 'HTTP_X_DEVICE_ID'


def _device_id(request):
    return request.META.get(DEVICE_HEADER) or request.query_params.get('deviceId') or None


def _profile_for(device_id):
    if not device_id:
        return None
    profile = UserProfile.objects.filter(device_id=device_id).first()
    return profile_context(profile) if profile else None


def _lesson_not_found():
    return Response({'success': False, 'message': 'Leçon non trouvée'}, status=status.HTTP_404_NOT_FOUND)


def _invalid(serializer, message='Requête invalide'):
    return Response(
        {'success': False, 'message': message, 'errors': serializer.errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


# =============================================================================
# Lessons
# =============================================================================

class LessonListCreateView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        lessons = Lesson.objects.all()
        device_id = _device_id(request)
        if device_id:
            lessons = lessons.filter(device_id=device_id)
        return Response({'success': True, 'data': LessonSerializer(lessons, many=True).data})

    def post(self, request):
        serializer = LessonCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'Le titre doit contenir entre 3 et 200 caractères')

        device_id = serializer.validated_data.get('deviceId') or _device_id(request)
        lesson = Lesson.objects.create(
            title=serializer.validated_data['title'],
            status=Lesson.Status.DRAFT,
            device_id=device_id,
        )
        logger.info(f"Lesson {lesson.id} created: {lesson.title}")

        start_lesson_generation(lesson.id, _profile_for(device_id))
        lesson.refresh_from_db()

        return Response({
            'success': True,
            'data': LessonSerializer(lesson).data,
            'message': 'Leçon créée, génération en cours...',
        }, status=status.HTTP_201_CREATED)


class LessonDetailView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, lesson_id: int):
        lesson = Lesson.objects.filter(pk=lesson_id).first()
        if lesson is None:
            return _lesson_not_found()
        return Response({'success': True, 'data': LessonSerializer(lesson).data})


def _test_lesson_content():
    section_id = str(uuid.uuid4())
    return {
        'title': 'Leçon de test',
        'description': 'Une leçon courte pour vérifier le lecteur.',
        'sections': [{
            'id': section_id,
            'title': 'Premiers pas',
            'check_understanding': False,
            'subsections': [{
                'title': 'Bienvenue',
                'content': "Ceci est une leçon de test générée sans appel au modèle.",
                'imageQuery': 'education',
            }],
        }],
        'conclusion': 'Fin de la leçon de test.',
        'audioFiles': {},
    }


class TestLessonView(APIView):
    """Creates a ready lesson with fixture content, no generation involved."""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        content = _test_lesson_content()
        lesson = Lesson.objects.create(
            title=content['title'],
            description=content['description'],
            status=Lesson.Status.READY,
            plan={'sections': [{'title': s['title']} for s in content['sections']]},
            content=content,
            device_id=_device_id(request),
        )
        return Response({
            'success': True,
            'data': LessonSerializer(lesson).data,
            'message': 'Leçon de test créée',
        }, status=status.HTTP_201_CREATED)


class SectionQuestionView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request, lesson_id: int, section_id: str):
        lesson = Lesson.objects.filter(pk=lesson_id).first()
        if lesson is None:
            return _lesson_not_found()

        serializer = SectionQuestionSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'La question est requise')

        try:
            result = get_qa_generator().answer_section_question(
                lesson.content or {},
                section_id,
                serializer.validated_data['question'],
                _profile_for(_device_id(request) or lesson.device_id),
            )
        except LookupError:
            return Response(
                {'success': False, 'message': 'Section non trouvée'}, status=status.HTTP_404_NOT_FOUND,
            )
        return Response({'success': True, 'data': result})


# =============================================================================
# Profiles
# =============================================================================

class ProfileView(APIView):
    """Upsert a profile keyed by device id."""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        device_id = request.data.get('deviceId') or _device_id(request)
        existing = UserProfile.objects.filter(device_id=device_id).first() if device_id else None

        data = request.data.copy()
        if device_id:
            data['deviceId'] = device_id
        serializer = UserProfileSerializer(existing, data=data, partial=existing is not None)
        if not serializer.is_valid():
            return _invalid(serializer, 'Profil invalide')
        profile = serializer.save()

        return Response({
            'success': True,
            'data': UserProfileSerializer(profile).data,
            'message': 'Profil mis à jour' if existing else 'Profil créé',
        }, status=status.HTTP_200_OK if existing else status.HTTP_201_CREATED)


class ProfileDetailView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, device_id: str):
        profile = UserProfile.objects.filter(device_id=device_id).first()
        if profile is None:
            return Response({'success': False, 'message': 'Profil non trouvé'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'success': True, 'data': UserProfileSerializer(profile).data})


# =============================================================================
# Progress
# =============================================================================

def _missing_device():
    return Response(
        {'success': False, 'message': 'En-tête X-Device-Id requis'}, status=status.HTTP_400_BAD_REQUEST,
    )


class LessonProgressView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, lesson_id: int):
        device_id = _device_id(request)
        if not device_id:
            return _missing_device()
        if not Lesson.objects.filter(pk=lesson_id).exists():
            return _lesson_not_found()

        record = LessonProgress.objects.filter(lesson_id=lesson_id, device_id=device_id).first()
        if record is None:
            return Response({'success': True, 'data': {'currentStep': 0, 'totalSteps': 0, 'completed': False}})
        return Response({'success': True, 'data': LessonProgressSerializer(record).data})

    def put(self, request, lesson_id: int):
        device_id = _device_id(request)
        if not device_id:
            return _missing_device()
        lesson = Lesson.objects.filter(pk=lesson_id).first()
        if lesson is None:
            return _lesson_not_found()

        serializer = LessonProgressUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'Progression invalide')
        data = serializer.validated_data

        record, created = LessonProgress.objects.get_or_create(lesson=lesson, device_id=device_id)

        section_index = data.get('currentSectionIndex', data.get('currentStep'))
        if section_index is not None:
            record.current_section_index = section_index
        if 'currentSubsectionIndex' in data:
            record.current_subsection_index = data['currentSubsectionIndex']
        if 'completedSections' in data:
            record.completed_sections = sorted(set(data['completedSections']))
        completed = data.get('isCompleted', data.get('completed'))
        if completed is not None:
            record.is_completed = completed

        if created:
            now = timezone.now()
            record.last_reviewed_at = now
            record.next_review_at = now + timedelta(days=REVIEW_INTERVALS_DAYS[0])
        else:
            record.schedule_next_review()
        record.save()

        return Response({'success': True, 'data': LessonProgressSerializer(record).data})


class ProgressListView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        device_id = _device_id(request)
        if not device_id:
            return _missing_device()
        records = LessonProgress.objects.filter(device_id=device_id).order_by('-updated_at')
        return Response({'success': True, 'data': LessonProgressSerializer(records, many=True).data})


# =============================================================================
# Q&A and quizzes
# =============================================================================

class QAGenerateView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = StudyAidRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'lessonId, title et content sont requis')
        data = serializer.validated_data
        try:
            session = get_qa_generator().generate_session(
                data['lessonId'], data['title'], data['content'], _profile_for(_device_id(request)),
            )
        except GenerationFailure as e:
            logger.error(f"Q&A generation failed: {e}")
            return Response(
                {'success': False, 'message': 'Erreur lors de la génération des Q&A'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({'success': True, 'data': session}, status=status.HTTP_201_CREATED)


class QAAskView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = AskQuestionSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'lessonId et question sont requis')
        data = serializer.validated_data

        lesson = Lesson.objects.filter(pk=data['lessonId']).first()
        if lesson is None:
            return _lesson_not_found()
        if not lesson.content:
            return Response(
                {'success': False, 'message': "Le contenu de la leçon n'est pas encore disponible"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        answer = get_qa_generator().answer_question(
            data['question'], lesson.content, _profile_for(_device_id(request) or lesson.device_id),
        )
        return Response({'success': True, 'data': {'question': data['question'], 'answer': answer}})


class QASessionsView(APIView):
    """Sessions are not persisted; the list is always empty."""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({'success': True, 'data': []})


class QuizGenerateView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = StudyAidRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer, 'lessonId, title et content sont requis')
        data = serializer.validated_data
        try:
            quiz = get_quiz_generator().generate_quiz(
                data['lessonId'], data['title'], data['content'], _profile_for(_device_id(request)),
            )
        except GenerationFailure as e:
            logger.error(f"Quiz generation failed: {e}")
            return Response(
                {'success': False, 'message': 'Erreur lors de la génération du quiz'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({'success': True, 'data': quiz}, status=status.HTTP_201_CREATED)


class QuizListView(APIView):
    """Quizzes are not persisted; the list is always empty."""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({'success': True, 'data': []})


# =============================================================================
# Suggestions
# =============================================================================

class SuggestionsView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        serializer = SuggestionRequestSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return Response({
            'success': True,
            'data': get_suggestions(data.get('country'), data.get('university') or None),
        })
