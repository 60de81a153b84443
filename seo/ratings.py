"""
Rating store: persistence for section ratings, recommendation sets and
deployment history.

Writes are serialized per (page, section_type) with row locks inside a
transaction; reads never lock and see the last committed state.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from .allocator import RecommendationSet
from .exceptions import PointBudgetViolation
from .models import ContentAnalysis, ContentDeployment, Page, SectionRating, SectionRecommendation
from .sections import MAX_SECTION_SCORE, SECTION_TYPES, clamp_score, is_section_type, item_to_text

logger = logging.getLogger(__name__)

RecommendationSets = Union[Mapping[str, RecommendationSet], Iterable[RecommendationSet]]


def _normalize_ratings(ratings) -> Dict[str, int]:
    normalized = {}
    for key, value in (ratings or {}).items():
        key = getattr(key, 'value', key)
        if is_section_type(key):
            normalized[key] = clamp_score(value)
    return normalized


def _normalize_key(text: str) -> str:
    return ' '.join(text.lower().split())


def _flatten(stored) -> List[str]:
    if isinstance(stored, list):
        return [item_to_text(item) for item in stored]
    return [item_to_text(stored)]


class RatingStore:
    """
    Section rating persistence bound to one database alias.

    Build it once per request or job (see seo.services) rather than
    sharing module-level state.
    """

    def __init__(self, using: str = 'default'):
        self.using = using

    def _ratings(self):
        return SectionRating.objects.using(self.using)

    def _recommendations(self):
        return SectionRecommendation.objects.using(self.using)

    # ── ratings ──────────────────────────────────────────────

    def save_section_ratings(self, page_id, analysis_id, ratings) -> Dict[str, int]:
        """
        Upsert one rating row per section type for *page_id*.

        Missing sections are stored as 0. Rows that already exist keep their
        improvement history (previous_score, improvement_count,
        last_improved_at); only the score and owning analysis change.
        Returns the full map that was written.
        """
        scores = _normalize_ratings(ratings)
        written = {section: scores.get(section, 0) for section in SECTION_TYPES}
        now = timezone.now()

        with transaction.atomic(using=self.using):
            # Page lock serializes first-time inserts for the page
            page_lock = Page.objects.using(self.using).select_for_update().filter(pk=page_id)
            list(page_lock.values_list('pk', flat=True))
            existing = {
                row.section_type: row
                for row in self._ratings().select_for_update().filter(page_id=page_id)
            }

            for section_type, score in written.items():
                row = existing.get(section_type)
                if row is None:
                    self._ratings().create(
                        page_id=page_id,
                        analysis_id=analysis_id,
                        section_type=section_type,
                        current_score=score,
                    )
                    continue
                row.current_score = score
                row.analysis_id = analysis_id
                row.updated_at = now
                row.save(using=self.using, update_fields=['current_score', 'analysis', 'updated_at'])

        logger.info(f"Saved section ratings for page {page_id} (analysis {analysis_id})")
        return written

    def get_current_section_ratings(self, page_id) -> Optional[Dict[str, int]]:
        """
        Return {section_type: score} with all seven keys, or None when the
        page has never been rated.
        """
        rows = list(self._ratings().filter(page_id=page_id).values_list('section_type', 'current_score'))
        if not rows:
            return None

        ratings = {section: 0 for section in SECTION_TYPES}
        for section_type, score in rows:
            if section_type in ratings:
                ratings[section_type] = score
        return ratings

    def get_section_rating(self, page_id, section_type) -> Optional[SectionRating]:
        return self._ratings().filter(page_id=page_id, section_type=section_type).first()

    # ── recommendations ──────────────────────────────────────

    def save_section_recommendations(self, page_id, analysis_id, sets: RecommendationSets) -> int:
        """
        Make *sets* the page's current recommendations for this analysis.

        Sets produced by earlier analyses are kept as history
        (is_current=False); sets already stored for this analysis are
        replaced wholesale. Returns the number of rows written.
        """
        if isinstance(sets, Mapping):
            sets = list(sets.values())
        else:
            sets = list(sets)

        written = 0
        with transaction.atomic(using=self.using):
            scores = dict(
                self._ratings().select_for_update()
                .filter(page_id=page_id)
                .values_list('section_type', 'current_score')
            )

            self._recommendations().filter(page_id=page_id, is_current=True).exclude(
                analysis_id=analysis_id
            ).update(is_current=False)
            self._recommendations().filter(analysis_id=analysis_id).delete()

            for rec_set in sets:
                if not rec_set.recommendations:
                    continue
                if rec_set.section_type in scores:
                    self._check_point_budget(rec_set, scores[rec_set.section_type])

                self._recommendations().create(
                    page_id=page_id,
                    analysis_id=analysis_id,
                    section_type=rec_set.section_type,
                    recommendations=rec_set.items_as_dicts(),
                    priority=rec_set.aggregate_priority,
                    estimated_impact=rec_set.estimated_impact,
                    is_current=True,
                )
                written += 1

        logger.info(f"Saved {written} recommendation sets for page {page_id} (analysis {analysis_id})")
        return written

    @staticmethod
    def _check_point_budget(rec_set: RecommendationSet, current_score: int):
        expected = max(0, MAX_SECTION_SCORE - current_score)
        actual = rec_set.total_impact
        if actual != expected:
            raise PointBudgetViolation(rec_set.section_type, expected, actual)

    def save_analysis(self, page_id, analysis_id, ratings, sets: RecommendationSets) -> Dict[str, int]:
        """Persist ratings and their recommendation sets in one transaction."""
        with transaction.atomic(using=self.using):
            written = self.save_section_ratings(page_id, analysis_id, ratings)
            self.save_section_recommendations(page_id, analysis_id, sets)
        return written

    def get_section_recommendations(self, page_id, section_type) -> List[str]:
        """
        All recommendation text ever stored for a section, current set first.

        Duplicates (ignoring case and whitespace) and blanks are dropped. A
        database failure is logged and yields an empty list.
        """
        try:
            stored = list(
                self._recommendations()
                .filter(page_id=page_id, section_type=section_type)
                .order_by('-is_current', '-created_at')
                .values_list('recommendations', flat=True)
            )
        except DatabaseError:
            logger.exception(f"Failed to load recommendations for page {page_id}/{section_type}")
            return []

        seen = set()
        texts = []
        for record in stored:
            for text in _flatten(record):
                text = text.strip()
                key = _normalize_key(text)
                if not key or key in seen:
                    continue
                seen.add(key)
                texts.append(text)
        return texts

    def get_recommendation_items(self, page_id, section_type) -> List[dict]:
        """Structured items of the section's current recommendation set."""
        current = (
            self._recommendations()
            .filter(page_id=page_id, section_type=section_type, is_current=True)
            .order_by('-created_at')
            .first()
        )
        if current is None or not isinstance(current.recommendations, list):
            return []
        return [item for item in current.recommendations if isinstance(item, dict)]

    # ── deployments ──────────────────────────────────────────

    def record_deployment(self, page_id, section_type, previous_score, new_score,
                          content: str, model: str = '', actor: str = '') -> ContentDeployment:
        """
        Append a deployment record and move the section's rating forward.

        The rating row is locked for the duration so two deployments to the
        same section never interleave; other sections of the page are not
        blocked. When *previous_score* is None it is taken from the locked
        row, so the recorded delta always starts from the committed score.
        """
        if previous_score is not None:
            previous_score = clamp_score(previous_score)
        new_score = clamp_score(new_score)
        now = timezone.now()

        with transaction.atomic(using=self.using):
            rating = self._ratings().select_for_update().filter(
                page_id=page_id, section_type=section_type
            ).first()

            if rating is None:
                rating = self._create_rating_for_deployment(page_id, section_type, model)
            if previous_score is None:
                previous_score = rating.current_score

            ContentDeployment.objects.using(self.using).filter(
                page_id=page_id, section_type=section_type, is_active=True
            ).update(is_active=False)

            deployment = ContentDeployment(
                page_id=page_id,
                section_type=section_type,
                previous_score=previous_score,
                new_score=new_score,
                deployed_content=content,
                ai_model=model or '',
                deployed_by=actor or '',
                status='deployed',
                is_active=True,
            )
            deployment.save(using=self.using)

            self._ratings().filter(pk=rating.pk).update(
                previous_score=previous_score,
                current_score=new_score,
                improvement_count=F('improvement_count') + 1,
                last_improved_at=now,
                updated_at=now,
            )

        logger.info(
            f"Recorded deployment for page {page_id}/{section_type}: "
            f"{previous_score} → {new_score} ({deployment.score_improvement:+d})"
        )
        return deployment

    def _create_rating_for_deployment(self, page_id, section_type, model: str) -> SectionRating:
        # Lock the page so concurrent first deployments create one row
        Page.objects.using(self.using).select_for_update().get(pk=page_id)
        rating = self._ratings().select_for_update().filter(
            page_id=page_id, section_type=section_type
        ).first()
        if rating is not None:
            return rating

        analysis = ContentAnalysis.objects.using(self.using).filter(page_id=page_id).first()
        if analysis is None:
            analysis = ContentAnalysis.objects.using(self.using).create(
                page_id=page_id,
                overall_score=0,
                llm_model_used=model or '',
            )
        return self._ratings().create(
            page_id=page_id,
            analysis=analysis,
            section_type=section_type,
            current_score=0,
        )

    def get_section_improvement_history(self, page_id, section_type) -> List[ContentDeployment]:
        return list(
            ContentDeployment.objects.using(self.using)
            .filter(page_id=page_id, section_type=section_type)
            .order_by('deployed_at', 'pk')
        )
