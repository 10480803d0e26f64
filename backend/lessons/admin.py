from django.contrib import admin
from .models import Lesson, UserProfile, LessonProgress

admin.site.register(Lesson)
admin.site.register(UserProfile)
admin.site.register(LessonProgress)
