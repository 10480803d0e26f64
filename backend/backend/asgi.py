"""
ASGI config for backend project.

It exposes the ASGI callable as a module-level variable named ``application``.
HTTP goes to Django; websockets at ws/lessons/<id>/ receive generation progress.
"""

import os
from channels.routing import ProtocolTypeRouter, URLRouter
from django.core.asgi import get_asgi_application
from django.urls import path

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

django_asgi_app = get_asgi_application()

from lessons.realtime import LessonUpdatesConsumer
websocket_urlpatterns = [
    path('ws/lessons/<int:lesson_id>/', LessonUpdatesConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': URLRouter(websocket_urlpatterns),
})
