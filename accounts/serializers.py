"""
Serializers for dashboard users.
"""
from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""
    site_count = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'email', 'username', 'first_name', 'last_name', 'created_at', 'site_count')
        read_only_fields = fields

    def get_site_count(self, obj):
        return obj.sites.count()
