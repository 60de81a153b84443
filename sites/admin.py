from django.contrib import admin
from .models import Site


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ('name', 'url', 'user', 'is_active', 'average_score', 'pages_with_scores', 'total_pages', 'last_metrics_update')
    list_filter = ('is_active', 'created_at')
    search_fields = ('name', 'url', 'user__email')
    readonly_fields = ('created_at', 'updated_at', 'average_score', 'total_pages', 'pages_with_scores', 'last_metrics_update')
