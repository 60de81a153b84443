"""
Page score aggregation.

A page's score is the sum of its seven section scores expressed as a
percentage of the 70 available points. The result is cached on the page
and pushed up to the owning site's metrics.
"""
import logging
from typing import Mapping, Optional

from django.utils import timezone

from .models import Page
from .sections import MAX_SECTION_SCORE, SECTION_TYPES, clamp_score

logger = logging.getLogger(__name__)

MAX_PAGE_SCORE = 100


def round_ratio(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded half up, for non-negative integers."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def calculate_total_score(ratings: Mapping[str, int]) -> int:
    """
    Convert a {section_type: 0-10} map into a 0-100 page score.

    Sections missing from the map count as 0.
    """
    total = sum(clamp_score(ratings.get(section, 0)) for section in SECTION_TYPES)
    max_possible = len(SECTION_TYPES) * MAX_SECTION_SCORE
    return round_ratio(total * MAX_PAGE_SCORE, max_possible)


class PageScoreAggregator:
    """
    Recomputes cached page scores from the rating store.

    *propagator* is anything with ``update_site_metrics(site_id)``; pass
    None to skip the site roll-up.
    """

    def __init__(self, store, propagator=None, using: str = 'default'):
        self.store = store
        self.propagator = propagator
        self.using = using

    def _pages(self):
        return Page.objects.using(self.using)

    def update_page_score(self, page_id) -> Optional[int]:
        """
        Recompute and cache the page's score.

        Returns None (and writes nothing) when the page has no ratings yet.
        Database errors while writing the cache propagate; failures while
        refreshing the site metrics are logged and ignored.
        """
        ratings = self.store.get_current_section_ratings(page_id)
        if ratings is None:
            logger.info(f"No section ratings found for page {page_id}")
            return None

        page_score = calculate_total_score(ratings)
        now = timezone.now()
        self._pages().filter(pk=page_id).update(
            page_score=page_score,
            last_score_update=now,
            updated_at=now,
        )
        logger.info(f"Updated page {page_id} score to {page_score}%")

        if self.propagator is not None:
            site_id = self._pages().filter(pk=page_id).values_list('site_id', flat=True).first()
            if site_id is not None:
                self._propagate(site_id, page_id)

        return page_score

    def _propagate(self, site_id, page_id):
        try:
            self.propagator.update_site_metrics(site_id)
        except Exception:
            logger.exception(f"Site metrics update for site {site_id} failed after scoring page {page_id}")

    def get_page_score(self, page_id) -> int:
        """
        Cached page score, else the legacy score, else a fresh computation.
        Returns 0 for unknown or never-rated pages.
        """
        row = self._pages().filter(pk=page_id).values('page_score', 'legacy_score').first()
        if row is None:
            return 0
        if row['page_score'] is not None:
            return row['page_score']
        if row['legacy_score'] is not None:
            return row['legacy_score']
        score = self.update_page_score(page_id)
        return score if score is not None else 0
