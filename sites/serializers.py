"""
Serializers for the Site model.
"""
from rest_framework import serializers
from .models import Site


class SiteSerializer(serializers.ModelSerializer):
    """Serializer for Site model, including the cached metrics snapshot."""
    page_count = serializers.SerializerMethodField()

    class Meta:
        model = Site
        fields = (
            'id', 'name', 'url', 'is_active', 'created_at', 'updated_at',
            'page_count',
            # Cached metrics
            'average_score', 'total_pages', 'pages_with_scores', 'last_metrics_update',
        )
        read_only_fields = (
            'id', 'created_at', 'updated_at',
            'average_score', 'total_pages', 'pages_with_scores', 'last_metrics_update',
        )

    def get_page_count(self, obj):
        """Get count of pages for this site."""
        return obj.pages.count()
