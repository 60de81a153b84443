"""
Site model with its cached metrics snapshot.
"""
from django.conf import settings
from django.db import models


class Site(models.Model):
    """
    Represents a website whose pages are analyzed and optimized.
    One user can have multiple sites.

    average_score / total_pages / pages_with_scores are a cache derived from
    the site's pages (see sites.metrics). They can be wiped and rebuilt at
    any time; average_score is NULL until the first computation.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sites'
    )
    name = models.CharField(max_length=255)
    url = models.URLField(help_text="Base URL of the site")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Cached metrics
    average_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Rounded mean of the effective page scores (0-100)"
    )
    total_pages = models.PositiveIntegerField(default=0)
    pages_with_scores = models.PositiveIntegerField(
        default=0,
        help_text="Pages whose effective score is present and greater than zero"
    )
    last_metrics_update = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'sites'
        ordering = ['-created_at']
        unique_together = [['user', 'url']]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(average_score__isnull=True) | models.Q(average_score__lte=100),
                name='site_average_score_range',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.url})"

    @property
    def has_cached_metrics(self):
        return self.average_score is not None
