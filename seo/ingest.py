"""
Analysis ingestion pipeline.

Generator output -> validated section analyses -> point allocation ->
ratings and recommendation sets -> cached page score -> site metrics.
Running it twice with the same payload leaves the same state behind.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from django.db import transaction
from django.utils import timezone

from .allocator import build_recommendation_set
from .models import ContentAnalysis, Page
from .scoring import calculate_total_score
from .sections import parse_generator_payload
from .services import ScoringServices, build_scoring_services

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    analysis_id: str
    section_ratings: Dict[str, int]
    page_score: Optional[int]
    recommendation_sets: int


def ingest_generator_payload(page: Page, payload, model: str = '', summary: str = '',
                             services: Optional[ScoringServices] = None) -> IngestResult:
    """
    Persist one generator run for *page* and refresh the derived scores.

    *payload* is untrusted; anything malformed degrades to unrated sections
    rather than raising.
    """
    services = services or build_scoring_services()
    using = services.store.using

    analyses = parse_generator_payload(payload)
    ratings = {section_type: analysis.current_score for section_type, analysis in analyses.items()}
    sets = [
        build_recommendation_set(section_type, analysis.current_score, analysis.recommendations)
        for section_type, analysis in analyses.items()
    ]

    with transaction.atomic(using=using):
        analysis = ContentAnalysis.objects.using(using).create(
            page=page,
            overall_score=calculate_total_score(ratings),
            llm_model_used=model or '',
            page_summary=summary or '',
            analysis_summary=_assessment_summary(analyses),
        )
        written = services.store.save_analysis(page.pk, analysis.pk, ratings, sets)
        Page.objects.using(using).filter(pk=page.pk).update(last_analysis_at=timezone.now())

    page_score = services.aggregator.update_page_score(page.pk)
    logger.info(f"Ingested analysis {analysis.pk} for page {page.pk}: score {page_score}%")

    return IngestResult(
        analysis_id=str(analysis.pk),
        section_ratings=written,
        page_score=page_score,
        recommendation_sets=sum(1 for rec_set in sets if rec_set.recommendations),
    )


def _assessment_summary(analyses) -> str:
    lines = []
    for section_type, analysis in analyses.items():
        if analysis.overall_assessment:
            lines.append(f"{section_type}: {analysis.overall_assessment}")
    return '\n'.join(lines)
