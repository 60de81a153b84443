"""
Wiring for the section-rating engine.

Callers build the store, aggregator and propagator together for the
database alias they work against instead of importing shared instances.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from .ratings import RatingStore
from .scoring import PageScoreAggregator

if TYPE_CHECKING:
    from sites.metrics import SiteMetricsPropagator


@dataclass
class ScoringServices:
    store: RatingStore
    aggregator: PageScoreAggregator
    propagator: 'SiteMetricsPropagator'


def build_scoring_services(using: str = 'default') -> ScoringServices:
    from sites.metrics import SiteMetricsPropagator

    store = RatingStore(using=using)
    propagator = SiteMetricsPropagator(store, using=using)
    scoring_settings = getattr(settings, 'SCORING', {})
    aggregator = PageScoreAggregator(
        store,
        propagator=propagator if scoring_settings.get('PROPAGATE_SITE_METRICS', True) else None,
        using=using,
    )
    return ScoringServices(store=store, aggregator=aggregator, propagator=propagator)
