"""
Site metrics propagation.

Rolls cached page scores up into a per-site snapshot (average score and page
counts). The snapshot is always recomputed from scratch so that re-running
it after an interruption converges to the right values.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from django.db.models import F
from django.utils import timezone

from seo.models import Page
from seo.scoring import PageScoreAggregator, round_ratio
from .models import Site

logger = logging.getLogger(__name__)


@dataclass
class SiteMetrics:
    average_score: int
    total_pages: int
    pages_with_scores: int
    last_metrics_update: Optional[datetime] = None

    def to_dict(self):
        data = asdict(self)
        data['last_metrics_update'] = (
            self.last_metrics_update.isoformat() if self.last_metrics_update else None
        )
        return data


@dataclass
class BatchResult:
    sites_processed: int = 0
    sites_failed: int = 0
    pages_processed: int = 0
    pages_scored: int = 0
    pages_unrated: int = 0
    pages_from_legacy: int = 0
    pages_failed: int = 0

    def merge(self, other: 'BatchResult'):
        for name, value in asdict(other).items():
            setattr(self, name, getattr(self, name) + value)
        return self

    def to_dict(self):
        return asdict(self)


def effective_page_score(page_score: Optional[int], legacy_score: Optional[int]) -> Optional[int]:
    """
    Score a page contributes to its site.

    Precedence: the cached section-based score, then the legacy whole-page
    score, then None (no score yet). A legitimate 0 is returned as 0.
    """
    if page_score is not None:
        return page_score
    if legacy_score is not None:
        return legacy_score
    return None


def compute_site_metrics(effective_scores: Iterable[Optional[int]]) -> SiteMetrics:
    """Pure roll-up of effective page scores; None entries count as pages without a score."""
    total_pages = 0
    scored = []
    for score in effective_scores:
        total_pages += 1
        if score is not None and score > 0:
            scored.append(score)

    average = round_ratio(sum(scored), len(scored)) if scored else 0
    return SiteMetrics(
        average_score=average,
        total_pages=total_pages,
        pages_with_scores=len(scored),
    )


class SiteMetricsPropagator:
    """Maintains the cached metrics columns on Site."""

    def __init__(self, store, using: str = 'default'):
        self.store = store
        self.using = using

    def _sites(self):
        return Site.objects.using(self.using)

    def _pages(self):
        return Page.objects.using(self.using)

    def update_site_metrics(self, site_id) -> SiteMetrics:
        rows = self._pages().filter(site_id=site_id).values_list('page_score', 'legacy_score')
        metrics = compute_site_metrics(
            effective_page_score(page_score, legacy_score) for page_score, legacy_score in rows
        )
        metrics.last_metrics_update = timezone.now()

        updated = self._sites().filter(pk=site_id).update(
            average_score=metrics.average_score,
            total_pages=metrics.total_pages,
            pages_with_scores=metrics.pages_with_scores,
            last_metrics_update=metrics.last_metrics_update,
            updated_at=metrics.last_metrics_update,
        )
        if not updated:
            logger.warning(f"Site {site_id} not found while updating metrics")
        else:
            logger.info(
                f"Updated site {site_id} metrics: {metrics.average_score}% avg "
                f"({metrics.pages_with_scores}/{metrics.total_pages} pages)"
            )
        return metrics

    def get_site_metrics(self, site_id) -> Optional[SiteMetrics]:
        """
        Cached snapshot, computed on first access. None if the site does not exist.
        """
        site = self._sites().filter(pk=site_id).only(
            'average_score', 'total_pages', 'pages_with_scores', 'last_metrics_update'
        ).first()
        if site is None:
            return None
        if not site.has_cached_metrics:
            return self.update_site_metrics(site_id)
        return SiteMetrics(
            average_score=site.average_score,
            total_pages=site.total_pages,
            pages_with_scores=site.pages_with_scores,
            last_metrics_update=site.last_metrics_update,
        )

    def update_all_pages_in_site(self, site_id, backfill_legacy: bool = False) -> BatchResult:
        """
        Rescore every page of the site, then refresh the site snapshot once.

        A page that fails is logged and skipped. With *backfill_legacy*,
        pages that have no ratings but carry a positive legacy score get
        that score copied into their cached page score.
        """
        aggregator = PageScoreAggregator(self.store, propagator=None, using=self.using)
        result = BatchResult()
        page_ids = list(self._pages().filter(site_id=site_id).order_by('pk').values_list('pk', flat=True))
        logger.info(f"Updating scores for {len(page_ids)} pages in site {site_id}")

        for page_id in page_ids:
            result.pages_processed += 1
            try:
                score = aggregator.update_page_score(page_id)
                if score is None and backfill_legacy and self._backfill_legacy_score(page_id):
                    result.pages_from_legacy += 1
                elif score is None:
                    result.pages_unrated += 1
                else:
                    result.pages_scored += 1
            except Exception:
                result.pages_failed += 1
                logger.exception(f"Failed to update score for page {page_id} in site {site_id}")

        self.update_site_metrics(site_id)
        result.sites_processed += 1
        return result

    def _backfill_legacy_score(self, page_id) -> bool:
        now = timezone.now()
        return bool(
            self._pages().filter(
                pk=page_id, page_score__isnull=True, legacy_score__gt=0
            ).update(page_score=F('legacy_score'), last_score_update=now)
        )

    def update_all_scores(self, backfill_legacy: bool = False) -> BatchResult:
        """Rescore every page of every active site."""
        result = BatchResult()
        sites = list(self._sites().filter(is_active=True).order_by('pk').values_list('pk', 'name'))
        logger.info(f"Starting bulk score update for {len(sites)} sites")

        for site_id, name in sites:
            logger.info(f"Processing site: {name} ({site_id})")
            try:
                result.merge(self.update_all_pages_in_site(site_id, backfill_legacy=backfill_legacy))
            except Exception:
                result.sites_failed += 1
                logger.exception(f"Failed to update scores for site {site_id}")

        logger.info(f"Completed bulk score update: {result.to_dict()}")
        return result
