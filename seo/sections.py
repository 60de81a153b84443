"""
Section data model for the section-rating engine.

Every page is rated on seven fixed sections. Generator payloads arrive as
loose JSON; this module turns them into typed records keyed by SectionType
and absorbs malformed input instead of raising.
"""
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import models

MAX_SECTION_SCORE = 10


class SectionType(models.TextChoices):
    TITLE = 'title', 'Title'
    DESCRIPTION = 'description', 'Meta Description'
    HEADINGS = 'headings', 'Headings'
    CONTENT = 'content', 'Content'
    SCHEMA = 'schema', 'Schema Markup'
    IMAGES = 'images', 'Images'
    LINKS = 'links', 'Links'


SECTION_TYPES = tuple(SectionType.values)


class Priority(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    CRITICAL = 'critical', 'Critical'


PRIORITY_WEIGHTS = {
    'critical': 4,
    'high': 3,
    'medium': 2,
    'low': 1,
}


def is_section_type(value) -> bool:
    return isinstance(value, str) and value in SECTION_TYPES


def clamp_score(value) -> int:
    """Coerce *value* to an int section score in [0, MAX_SECTION_SCORE]."""
    if isinstance(value, bool):
        return 0
    try:
        score = math.floor(float(value) + 0.5)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(MAX_SECTION_SCORE, score))


def _coerce_impact(value) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    return ''


@dataclass
class RecommendationItem:
    priority: str
    category: str
    title: str
    description: str
    expected_impact: int
    implementation: str

    @property
    def weight(self) -> int:
        return PRIORITY_WEIGHTS.get(self.priority, PRIORITY_WEIGHTS['medium'])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the generator's camelCase keys (stored as JSON)."""
        return {
            'priority': self.priority,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'expectedImpact': self.expected_impact,
            'implementation': self.implementation,
        }

    @classmethod
    def from_payload(cls, raw) -> Optional['RecommendationItem']:
        """
        Build an item from an untrusted generator record.

        Returns None when the record cannot be salvaged: not a mapping, or
        neither a title nor a description to show the user.
        """
        if not isinstance(raw, dict):
            return None

        title = _text(raw.get('title'))
        description = _text(raw.get('description'))
        if not title and not description:
            return None

        priority = _text(raw.get('priority')).lower()
        if priority not in Priority.values:
            priority = Priority.MEDIUM.value

        impact = raw.get('expectedImpact', raw.get('expected_impact'))
        return cls(
            priority=priority,
            category=_text(raw.get('category')) or 'General',
            title=title or description,
            description=description or title,
            expected_impact=_coerce_impact(impact),
            implementation=_text(raw.get('implementation')),
        )


@dataclass
class SectionAnalysis:
    section_type: str
    current_score: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[RecommendationItem] = field(default_factory=list)
    overall_assessment: str = ''
    estimated_improvement: int = 0

    @classmethod
    def empty(cls, section_type: str) -> 'SectionAnalysis':
        return cls(section_type=section_type, current_score=0)

    @classmethod
    def from_payload(cls, raw) -> Optional['SectionAnalysis']:
        if not isinstance(raw, dict):
            return None
        section_type = raw.get('sectionType', raw.get('section_type'))
        if not is_section_type(section_type):
            return None

        raw_recs = raw.get('recommendations')
        items = []
        if isinstance(raw_recs, list):
            for rec in raw_recs:
                item = RecommendationItem.from_payload(rec)
                if item is not None:
                    items.append(item)

        raw_issues = raw.get('issues')
        issues = [_text(i) for i in raw_issues if _text(i)] if isinstance(raw_issues, list) else []

        return cls(
            section_type=section_type,
            current_score=clamp_score(raw.get('currentScore', raw.get('current_score'))),
            issues=issues,
            recommendations=items,
            overall_assessment=_text(raw.get('overallAssessment')),
            estimated_improvement=_coerce_impact(raw.get('estimatedImprovement')),
        )


def parse_generator_payload(payload) -> Dict[str, SectionAnalysis]:
    """
    Validate a generator payload into one SectionAnalysis per section type.

    Accepts ``{"sections": [...]}``, a bare list of section records, or a
    JSON string of either. Records with an unknown section type are dropped,
    a later record for the same section wins, and sections the generator
    skipped come back unrated (score 0, no recommendations).
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            payload = None

    if isinstance(payload, dict):
        records = payload.get('sections')
    else:
        records = payload
    if not isinstance(records, list):
        records = []

    analyses = {}
    for record in records:
        analysis = SectionAnalysis.from_payload(record)
        if analysis is not None:
            analyses[analysis.section_type] = analysis

    return {
        section_type: analyses.get(section_type) or SectionAnalysis.empty(section_type)
        for section_type in SECTION_TYPES
    }


def item_to_text(raw) -> str:
    """
    Flatten one stored recommendation into its most readable text.

    Precedence: title, description, text, then a compact JSON dump of
    whatever structure is left.
    """
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, dict):
        for key in ('title', 'description', 'text'):
            value = _text(raw.get(key))
            if value:
                return value
        if not raw:
            return ''
        return json.dumps(raw, sort_keys=True, default=str)
    if raw is None:
        return ''
    return _text(raw)
