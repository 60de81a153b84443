from django.contrib import admin
from .models import ContentAnalysis, ContentDeployment, Page, SectionRating, SectionRecommendation


@admin.register(Page)
class PageAdmin(admin.ModelAdmin):
    list_display = ('title', 'site', 'url', 'status', 'page_score', 'legacy_score', 'last_score_update')
    list_filter = ('status', 'site', 'created_at')
    search_fields = ('title', 'url', 'site__name')
    readonly_fields = ('created_at', 'updated_at', 'page_score', 'last_score_update', 'last_analysis_at')


@admin.register(ContentAnalysis)
class ContentAnalysisAdmin(admin.ModelAdmin):
    list_display = ('id', 'page', 'overall_score', 'llm_model_used', 'analyzed_at')
    list_filter = ('llm_model_used', 'analyzed_at')
    search_fields = ('page__title', 'page__url')
    readonly_fields = ('analyzed_at',)


@admin.register(SectionRating)
class SectionRatingAdmin(admin.ModelAdmin):
    list_display = ('page', 'section_type', 'current_score', 'previous_score', 'improvement_count', 'last_improved_at')
    list_filter = ('section_type',)
    search_fields = ('page__title', 'page__url')
    readonly_fields = ('max_score', 'created_at', 'updated_at')


@admin.register(SectionRecommendation)
class SectionRecommendationAdmin(admin.ModelAdmin):
    list_display = ('page', 'section_type', 'priority', 'estimated_impact', 'is_current', 'created_at')
    list_filter = ('section_type', 'priority', 'is_current')
    search_fields = ('page__title', 'page__url')
    readonly_fields = ('created_at',)


@admin.register(ContentDeployment)
class ContentDeploymentAdmin(admin.ModelAdmin):
    list_display = ('page', 'section_type', 'previous_score', 'new_score', 'score_improvement', 'is_active', 'deployed_at')
    list_filter = ('section_type', 'status', 'is_active')
    search_fields = ('page__title', 'page__url', 'deployed_by')
    readonly_fields = [field.name for field in ContentDeployment._meta.fields]

    def has_change_permission(self, request, obj=None):
        return False
