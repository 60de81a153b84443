"""
Section analysis generator.

Asks the AI provider to rate the seven page sections and suggest
improvements. The response is returned as-is: it is untrusted and must go
through seo.ingest before anything is stored.
"""
import logging

from seo.sections import SECTION_TYPES

from .providers import call_ai

logger = logging.getLogger(__name__)

BODY_TEXT_LIMIT = 2000

SYSTEM_PROMPT = """You are an expert content optimization specialist covering SEO, \
structured data and optimization for citation by large language models.

Rate each section of the page from 0 to 10:
- 0-3: poor, needs major work
- 4-6: average, some improvements needed
- 7-8: good, minor optimizations possible
- 9-10: excellent, follows industry best practices

Respond with a JSON object of the form:
{"sections": [{"sectionType": "...", "currentScore": 0, "issues": ["..."],
  "recommendations": [{"priority": "low|medium|high|critical", "category": "...",
    "title": "...", "description": "...", "expectedImpact": 0, "implementation": "..."}],
  "overallAssessment": "...", "estimatedImprovement": 0}]}

Give 3-5 specific, actionable recommendations per section, highest impact first."""


def build_page_context(page) -> dict:
    """Context payload sent to the model for one page."""
    snapshot = page.content_snapshot if isinstance(page.content_snapshot, dict) else {}
    body_text = snapshot.get('body_text') or snapshot.get('bodyText') or ''
    images = snapshot.get('images') or []
    return {
        'url': page.url,
        'title': page.title or 'No title',
        'meta_description': page.meta_description or 'No meta description',
        'main_content': body_text[:BODY_TEXT_LIMIT] or 'No content',
        'headings': snapshot.get('headings') or [],
        'image_count': len(images),
        'images_with_alt': sum(1 for img in images if isinstance(img, dict) and img.get('alt')),
        'link_count': len(snapshot.get('links') or []),
        'schema_count': len(snapshot.get('schema') or []),
        'sections': list(SECTION_TYPES),
    }


def generate_section_analysis(page):
    """
    Run the generator for *page*.

    Returns (payload, model_name). Raises ai.providers.AIProviderError when
    no provider is configured or the call fails.
    """
    context = build_page_context(page)
    payload, provider, model = call_ai(SYSTEM_PROMPT, context, 'section_analysis')
    logger.info(f"Generated section analysis for page {page.pk} with {provider} ({model})")
    return payload, model
