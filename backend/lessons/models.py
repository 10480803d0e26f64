from datetime import timedelta

from django.db import models
from django.utils import timezone


class Lesson(models.Model):
    """A generated lesson, filled in stage by stage by the lesson pipeline."""

    class Status(models.TextChoices):
        DRAFT = 'draft', 'draft'
        PROCESSING = 'processing', 'processing'
        PLAN_READY = 'plan_ready', 'plan_ready'
        INTRO_READY = 'intro_ready', 'intro_ready'
        READY = 'ready', 'ready'

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    plan = models.JSONField(default=dict, blank=True)
    content = models.JSONField(default=dict, blank=True)
    device_id = models.CharField(max_length=128, blank=True, null=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"


class UserProfile(models.Model):
    """Learner profile, one per device."""

    class ProfileType(models.TextChoices):
        PUPIL = 'pupil', 'pupil'
        STUDENT = 'student', 'student'
        PROFESSIONAL = 'professional', 'professional'
        OTHER = 'other', 'other'

    profile_type = models.CharField(max_length=16, choices=ProfileType.choices, default=ProfileType.OTHER)
    education_level = models.CharField(max_length=100, blank=True, null=True)
    specialty = models.CharField(max_length=150, blank=True, null=True)
    name = models.CharField(max_length=150, blank=True, default='')
    birthdate = models.DateField(blank=True, null=True)
    device_id = models.CharField(max_length=128, unique=True)
    country = models.CharField(max_length=100, blank=True, null=True)
    institution_name = models.CharField(max_length=200, blank=True, null=True)
    series = models.CharField(max_length=50, blank=True, null=True)
    study_year = models.CharField(max_length=50, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name or self.device_id} ({self.profile_type})"


# Days until the next review, indexed by how many reviews were already done
REVIEW_INTERVALS_DAYS = [2, 7, 14, 30]


class LessonProgress(models.Model):
    """Where a device is in a lesson, plus its spaced-review schedule."""
    lesson = models.ForeignKey(Lesson, on_delete=models.CASCADE, related_name='progress_records')
    device_id = models.CharField(max_length=128, db_index=True)
    current_section_index = models.PositiveIntegerField(default=0)
    current_subsection_index = models.PositiveIntegerField(default=0)
    completed_sections = models.JSONField(default=list, blank=True)
    is_completed = models.BooleanField(default=False)
    last_reviewed_at = models.DateTimeField(blank=True, null=True)
    next_review_at = models.DateTimeField(blank=True, null=True)
    review_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('lesson', 'device_id')

    def schedule_next_review(self, now=None):
        """Record a completed pass and schedule the next review."""
        now = now or timezone.now()
        interval = REVIEW_INTERVALS_DAYS[min(self.review_count, len(REVIEW_INTERVALS_DAYS) - 1)]
        self.last_reviewed_at = now
        self.next_review_at = now + timedelta(days=interval)
        self.review_count += 1

    @property
    def is_due_for_review(self) -> bool:
        return bool(self.next_review_at and self.next_review_at <= timezone.now())
