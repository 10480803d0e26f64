from rest_framework import serializers

from lesson_pipeline.types import UserProfile as ProfileContext
from .models import Lesson, UserProfile, LessonProgress


class LessonSerializer(serializers.ModelSerializer):
    deviceId = serializers.CharField(source='device_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Lesson
        fields = [
            'id', 'title', 'description', 'status', 'plan', 'content',
            'deviceId', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class LessonCreateSerializer(serializers.Serializer):
    title = serializers.CharField(min_length=3, max_length=200, trim_whitespace=True)
    deviceId = serializers.CharField(required=False, allow_blank=True, max_length=128)


class UserProfileSerializer(serializers.ModelSerializer):
    profileType = serializers.ChoiceField(
        source='profile_type', choices=UserProfile.ProfileType.choices, required=False,
    )
    educationLevel = serializers.CharField(
        source='education_level', required=False, allow_blank=True, allow_null=True,
    )
    deviceId = serializers.CharField(source='device_id', max_length=128)
    institutionName = serializers.CharField(
        source='institution_name', required=False, allow_blank=True, allow_null=True,
    )
    studyYear = serializers.CharField(
        source='study_year', required=False, allow_blank=True, allow_null=True,
    )
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            'id', 'profileType', 'educationLevel', 'specialty', 'name', 'birthdate',
            'deviceId', 'country', 'institutionName', 'series', 'studyYear',
            'createdAt', 'updatedAt',
        ]
        extra_kwargs = {
            'specialty': {'required': False, 'allow_blank': True, 'allow_null': True},
            'name': {'required': False, 'allow_blank': True},
            'country': {'required': False, 'allow_blank': True, 'allow_null': True},
            'series': {'required': False, 'allow_blank': True, 'allow_null': True},
            'birthdate': {'required': False, 'allow_null': True},
        }


class LessonProgressSerializer(serializers.ModelSerializer):
    lessonId = serializers.IntegerField(source='lesson_id', read_only=True)
    deviceId = serializers.CharField(source='device_id', read_only=True)
    currentSectionIndex = serializers.IntegerField(source='current_section_index', read_only=True)
    currentSubsectionIndex = serializers.IntegerField(source='current_subsection_index', read_only=True)
    completedSections = serializers.JSONField(source='completed_sections', read_only=True)
    isCompleted = serializers.BooleanField(source='is_completed', read_only=True)
    lastReviewedAt = serializers.DateTimeField(source='last_reviewed_at', read_only=True)
    nextReviewAt = serializers.DateTimeField(source='next_review_at', read_only=True)
    reviewCount = serializers.IntegerField(source='review_count', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = LessonProgress
        fields = [
            'id', 'lessonId', 'deviceId', 'currentSectionIndex', 'currentSubsectionIndex',
            'completedSections', 'isCompleted', 'lastReviewedAt', 'nextReviewAt',
            'reviewCount', 'updatedAt',
        ]


class LessonProgressUpdateSerializer(serializers.Serializer):
    """Accepts both the legacy (currentStep/completed) and explicit field names."""
    currentStep = serializers.IntegerField(required=False, min_value=0)
    totalSteps = serializers.IntegerField(required=False, min_value=0)
    completed = serializers.BooleanField(required=False)
    currentSectionIndex = serializers.IntegerField(required=False, min_value=0)
    currentSubsectionIndex = serializers.IntegerField(required=False, min_value=0)
    completedSections = serializers.ListField(child=serializers.IntegerField(min_value=0), required=False)
    isCompleted = serializers.BooleanField(required=False)


def profile_context(profile: UserProfile) -> ProfileContext:
    """Generation context built from a stored profile"""
    return ProfileContext(
        profile_type=profile.profile_type,
        education_level=profile.education_level or None,
        specialty=profile.specialty or None,
        country=profile.country or None,
        institution_name=profile.institution_name or None,
        series=profile.series or None,
        study_year=profile.study_year or None,
    )
