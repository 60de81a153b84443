"""
SEO models: pages and the section-rating engine.

Tables are organised into three groups:
  1. Pages             Page (carries the cached page score)
  2. Analysis & scores  ContentAnalysis, SectionRating, SectionRecommendation
  3. Deployments       ContentDeployment (append-only history)

SectionRating is the source of truth for scores. Page.page_score and the
Site metrics columns are caches rebuilt from it.
"""

import uuid
from django.db import models
from sites.models import Site

from .sections import MAX_SECTION_SCORE, Priority, SectionType


# ─────────────────────────────────────────────────────────────
# PAGES
# ─────────────────────────────────────────────────────────────

class Page(models.Model):
    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name='pages')
    url = models.URLField(max_length=2048)
    title = models.CharField(max_length=500, blank=True)
    meta_description = models.TextField(blank=True)
    content_snapshot = models.JSONField(null=True, blank=True,
        help_text="Last crawled page content (title, headings, body text, ...)")
    status = models.CharField(max_length=20, default='active', choices=[
        ('active', 'Active'), ('archived', 'Archived'),
    ])

    page_score = models.PositiveSmallIntegerField(null=True, blank=True,
        help_text="Cached 0-100 score derived from the seven section ratings")
    last_score_update = models.DateTimeField(null=True, blank=True)
    legacy_score = models.PositiveSmallIntegerField(null=True, blank=True,
        help_text="Whole-page score from before section ratings existed")

    last_analysis_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pages'
        ordering = ['-created_at']
        unique_together = [['site', 'url']]
        indexes = [
            models.Index(fields=['site', 'status'], name='pages_site_id_5f4b1c_idx'),
            models.Index(fields=['url'], name='pages_url_8a3e2d_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(page_score__isnull=True) | models.Q(page_score__lte=100),
                name='page_score_range',
            ),
        ]

    def __str__(self):
        return f"{self.title or self.url} ({self.site.name})"


# ─────────────────────────────────────────────────────────────
# ANALYSIS & SCORES
# ─────────────────────────────────────────────────────────────

class ContentAnalysis(models.Model):
    """One analysis run of a page; owns the ratings and recommendations it produced."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    page = models.ForeignKey(Page, on_delete=models.CASCADE, related_name='analyses')
    overall_score = models.PositiveSmallIntegerField(default=0)
    llm_model_used = models.CharField(max_length=128, blank=True)
    page_summary = models.TextField(blank=True)
    analysis_summary = models.TextField(blank=True)
    analyzed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'content_analysis'
        ordering = ['-analyzed_at']
        indexes = [
            models.Index(fields=['page', 'analyzed_at'], name='content_ana_page_id_3c9d7e_idx'),
        ]

    def __str__(self):
        return f"Analysis {self.id} of page {self.page_id}"


class SectionRating(models.Model):
    """Current 0-10 rating of one section of one page."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    page = models.ForeignKey(Page, on_delete=models.CASCADE, related_name='section_ratings')
    analysis = models.ForeignKey(ContentAnalysis, on_delete=models.CASCADE,
        related_name='section_ratings')
    section_type = models.CharField(max_length=32, choices=SectionType.choices)
    current_score = models.PositiveSmallIntegerField(default=0)
    max_score = models.PositiveSmallIntegerField(default=MAX_SECTION_SCORE, editable=False)
    previous_score = models.PositiveSmallIntegerField(null=True, blank=True)
    improvement_count = models.PositiveIntegerField(default=0)
    last_improved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'content_ratings'
        unique_together = [('page', 'section_type')]
        indexes = [
            models.Index(fields=['page'], name='content_rat_page_id_7b21aa_idx'),
            models.Index(fields=['analysis'], name='content_rat_analysi_0e6f4c_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_score__lte=MAX_SECTION_SCORE),
                name='section_rating_score_range',
            ),
        ]

    def __str__(self):
        return f"{self.page_id}/{self.section_type}: {self.current_score}/{self.max_score}"

    @property
    def points_remaining(self):
        return max(0, self.max_score - self.current_score)


class SectionRecommendation(models.Model):
    """
    Recommendation set produced for one section by one analysis run.

    Sets from earlier runs are kept with is_current=False so the section's
    recommendation history stays readable.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    page = models.ForeignKey(Page, on_delete=models.CASCADE, related_name='section_recommendations')
    analysis = models.ForeignKey(ContentAnalysis, on_delete=models.CASCADE,
        related_name='section_recommendations')
    section_type = models.CharField(max_length=32, choices=SectionType.choices)
    recommendations = models.JSONField(default=list)
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)
    estimated_impact = models.PositiveSmallIntegerField(default=0)
    is_current = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'content_recommendations'
        ordering = ['-created_at']
        unique_together = [('analysis', 'section_type')]
        indexes = [
            models.Index(fields=['page', 'section_type'], name='content_rec_page_id_41d2b9_idx'),
            models.Index(fields=['page', 'is_current'], name='content_rec_page_id_c83f05_idx'),
        ]

    def __str__(self):
        return f"{self.page_id}/{self.section_type}: {len(self.recommendations)} recommendations"


# ─────────────────────────────────────────────────────────────
# DEPLOYMENTS
# ─────────────────────────────────────────────────────────────

class ContentDeployment(models.Model):
    """Immutable record of optimized content pushed live for a section."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    page = models.ForeignKey(Page, on_delete=models.CASCADE, related_name='deployments')
    section_type = models.CharField(max_length=32, choices=SectionType.choices)
    previous_score = models.PositiveSmallIntegerField()
    new_score = models.PositiveSmallIntegerField()
    score_improvement = models.SmallIntegerField()
    deployed_content = models.TextField()
    ai_model = models.CharField(max_length=128, blank=True)
    deployed_by = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=32, default='deployed', choices=[
        ('deployed', 'Deployed'), ('draft', 'Draft'), ('archived', 'Archived'),
    ])
    is_active = models.BooleanField(default=True)
    deployed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'content_deployments'
        ordering = ['deployed_at']
        indexes = [
            models.Index(fields=['page', 'deployed_at'], name='content_dep_page_id_9a0e12_idx'),
            models.Index(fields=['page', 'section_type', 'is_active'], name='content_dep_page_id_5d7c3b_idx'),
        ]

    def __str__(self):
        return f"{self.page_id}/{self.section_type}: {self.previous_score} → {self.new_score}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Deployment records are append-only and cannot be modified.")
        self.score_improvement = self.new_score - self.previous_score
        super().save(*args, **kwargs)
