"""
Serializers for pages, section ratings and deployments.
"""
from rest_framework import serializers

from .models import ContentDeployment, Page, SectionRating
from .sections import MAX_SECTION_SCORE, SectionType


class PageSerializer(serializers.ModelSerializer):
    """Serializer for Page model."""

    class Meta:
        model = Page
        fields = (
            'id', 'site', 'url', 'title', 'meta_description', 'status',
            'page_score', 'legacy_score', 'last_score_update', 'last_analysis_at',
            'created_at', 'updated_at',
        )
        read_only_fields = (
            'id', 'page_score', 'last_score_update', 'last_analysis_at',
            'created_at', 'updated_at',
        )


class SectionRatingSerializer(serializers.ModelSerializer):
    points_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = SectionRating
        fields = (
            'section_type', 'current_score', 'max_score', 'previous_score',
            'improvement_count', 'last_improved_at', 'points_remaining',
        )


class ContentDeploymentSerializer(serializers.ModelSerializer):
    """Serializer for ContentDeployment history entries."""

    class Meta:
        model = ContentDeployment
        fields = (
            'id', 'section_type', 'previous_score', 'new_score', 'score_improvement',
            'deployed_content', 'ai_model', 'deployed_by', 'status', 'is_active', 'deployed_at',
        )
        read_only_fields = fields


class DeploymentRequestSerializer(serializers.Serializer):
    """Body of POST /api/v1/pages/{id}/deployments/."""
    section_type = serializers.ChoiceField(choices=SectionType.choices)
    new_score = serializers.IntegerField(min_value=0, max_value=MAX_SECTION_SCORE)
    deployed_content = serializers.CharField()
    ai_model = serializers.CharField(required=False, allow_blank=True, default='')
