from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from .views import (
    LessonListCreateView,
    TestLessonView,
    LessonDetailView,
    LessonProgressView,
    SectionQuestionView,
    ProgressListView,
    ProfileView,
    ProfileDetailView,
    QAGenerateView,
    QAAskView,
    QASessionsView,
    QuizGenerateView,
    QuizListView,
    SuggestionsView,
)


urlpatterns = [
    path('lessons', csrf_exempt(LessonListCreateView.as_view()), name='lessons'),
    path('lessons/test', csrf_exempt(TestLessonView.as_view()), name='lesson-test'),
    path('lessons/<int:lesson_id>', LessonDetailView.as_view(), name='lesson-detail'),
    path('lessons/<int:lesson_id>/progress', csrf_exempt(LessonProgressView.as_view()), name='lesson-progress'),
    path(
        'lessons/<int:lesson_id>/sections/<str:section_id>/questions',
        csrf_exempt(SectionQuestionView.as_view()),
        name='lesson-section-question',
    ),
    path('progress', ProgressListView.as_view(), name='progress-list'),
    path('profiles', csrf_exempt(ProfileView.as_view()), name='profiles'),
    path('profiles/<str:device_id>', ProfileDetailView.as_view(), name='profile-detail'),
    path('qa/generate', csrf_exempt(QAGenerateView.as_view()), name='qa-generate'),
    path('qa/ask', csrf_exempt(QAAskView.as_view()), name='qa-ask'),
    path('qa/sessions', QASessionsView.as_view(), name='qa-sessions'),
    path('quiz/generate', csrf_exempt(QuizGenerateView.as_view()), name='quiz-generate'),
    path('quiz', QuizListView.as_view(), name='quiz-list'),
    path('suggestions', SuggestionsView.as_view(), name='suggestions'),
]
