"""
Recommendation point allocator.

A section scored ``current_score`` out of 10 has ``10 - current_score``
points left to earn. The generator's own expectedImpact values are never
trusted: the allocator redistributes the remaining points across the
section's recommendations so that they add up to exactly that budget,
handing the remainder to the highest-priority items first.
"""
from dataclasses import dataclass, field, replace
from typing import Iterable, List

from .sections import (
    MAX_SECTION_SCORE,
    PRIORITY_WEIGHTS,
    Priority,
    RecommendationItem,
    clamp_score,
)


@dataclass
class RecommendationSet:
    section_type: str
    recommendations: List[RecommendationItem] = field(default_factory=list)
    aggregate_priority: str = Priority.MEDIUM.value
    estimated_impact: int = 0

    @property
    def total_impact(self) -> int:
        return sum(item.expected_impact for item in self.recommendations)

    def items_as_dicts(self) -> List[dict]:
        return [item.to_dict() for item in self.recommendations]


def points_remaining(current_score) -> int:
    return max(0, MAX_SECTION_SCORE - clamp_score(current_score))


def _generic_recommendation(points: int) -> RecommendationItem:
    return RecommendationItem(
        priority=Priority.HIGH.value,
        category='General',
        title='Strengthen this section',
        description=(
            'Review this section against current SEO and readability best '
            'practices and rewrite it to close the remaining gap.'
        ),
        expected_impact=points,
        implementation='Apply the optimized content suggested for this section and redeploy.',
    )


def _clean(recommendations) -> List[RecommendationItem]:
    cleaned = []
    for rec in recommendations or []:
        if isinstance(rec, RecommendationItem):
            if rec.title or rec.description:
                cleaned.append(rec)
            continue
        item = RecommendationItem.from_payload(rec)
        if item is not None:
            cleaned.append(item)
    return cleaned


def allocate_points(current_score, recommendations: Iterable) -> List[RecommendationItem]:
    """
    Return copies of *recommendations* whose expected impacts sum to the
    section's remaining points.

    Items may be RecommendationItem instances or raw generator dicts;
    malformed ones are dropped. Ordering of the returned list matches the
    input order.
    """
    target = points_remaining(current_score)
    items = _clean(recommendations)

    if target == 0:
        return [replace(item, expected_impact=0) for item in items]

    if not items:
        return [_generic_recommendation(target)]

    # sorted() is stable, so equal weights keep their original order
    ranked = sorted(range(len(items)), key=lambda i: -items[i].weight)
    base, remainder = divmod(target, len(items))

    impacts = [base] * len(items)
    for index in ranked[:remainder]:
        impacts[index] += 1

    return [replace(item, expected_impact=impact) for item, impact in zip(items, impacts)]


def aggregate_priority(items: Iterable[RecommendationItem]) -> str:
    best = None
    for item in items:
        if best is None or PRIORITY_WEIGHTS.get(item.priority, 0) > PRIORITY_WEIGHTS.get(best, 0):
            best = item.priority
    return best or Priority.MEDIUM.value


def build_recommendation_set(section_type: str, current_score, recommendations) -> RecommendationSet:
    items = allocate_points(current_score, recommendations)
    return RecommendationSet(
        section_type=section_type,
        recommendations=items,
        aggregate_priority=aggregate_priority(items),
        estimated_impact=sum(item.expected_impact for item in items),
    )
