"""DRF serializers for the request contracts of the generation endpoints."""
from rest_framework import serializers


class AudioRequestSerializer(serializers.Serializer):
    """Text to synthesize, with an optional voice name."""
    text = serializers.CharField(min_length=1, max_length=5000, trim_whitespace=True)
    voice = serializers.CharField(required=False, allow_blank=True, max_length=100)


class StudyAidRequestSerializer(serializers.Serializer):
    """Lesson context for Q&A and quiz generation."""
    lessonId = serializers.IntegerField()
    title = serializers.CharField(max_length=200)
    content = serializers.JSONField()

    def validate_content(self, value):
        if value in (None, '', {}, []):
            raise serializers.ValidationError('content is required')
        return value


class AskQuestionSerializer(serializers.Serializer):
    lessonId = serializers.IntegerField()
    question = serializers.CharField(min_length=1, max_length=2000, trim_whitespace=True)


class SectionQuestionSerializer(serializers.Serializer):
    question = serializers.CharField(min_length=1, max_length=2000, trim_whitespace=True)


class SuggestionRequestSerializer(serializers.Serializer):
    country = serializers.CharField(required=False, allow_blank=True, default='')
    university = serializers.CharField(required=False, allow_blank=True, default='')
