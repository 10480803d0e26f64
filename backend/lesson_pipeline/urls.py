from django.urls import path
from . import views

urlpatterns = [
    path('audio/stream', views.audio_stream_view, name='audio_stream'),
    path('audio/url', views.audio_url_view, name='audio_url'),
    path('health', views.health_check, name='lesson_pipeline_health'),
]
