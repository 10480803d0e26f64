"""
URL configuration for backend project.

All API routes live under /api/v1/; the progress websocket is routed in asgi.py.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('lessons.urls')),
    path('api/v1/', include('lesson_pipeline.urls')),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
