"""
AI provider integration: OpenAI (primary) with Claude fallback.
"""
import json
import logging
import os
import re

from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
TEMPERATURE = 0.3
MAX_TOKENS = 4000


class AIProviderError(Exception):
    """The provider could not be reached or returned something unusable."""


def _model(key: str, default: str) -> str:
    return getattr(settings, 'SCORING', {}).get(key) or default


def _clean_json(text: str) -> dict:
    """Strip markdown fences and parse JSON."""
    cleaned = re.sub(r'```(?:json)?\s*', '', text or '').strip()
    cleaned = cleaned.rstrip('`').strip()
    return json.loads(cleaned)


def _build_user_message(context_payload: dict, action: str) -> str:
    action_label = action.replace('_', ' ')
    return (
        f"<context>\n{json.dumps(context_payload, indent=2, default=str)}\n</context>\n\n"
        f"Analyze this page and generate the {action_label}."
    )


def call_ai(system_prompt: str, context_payload: dict, action: str):
    """
    Call the configured AI provider.

    OpenAI is used when OPENAI_API_KEY is set, Claude when only
    ANTHROPIC_API_KEY is. Returns tuple: (parsed_response, provider_name, model_name)
    """
    user_message = _build_user_message(context_payload, action)

    openai_key = os.getenv('OPENAI_API_KEY')
    if openai_key:
        try:
            return _call_openai(openai_key, system_prompt, user_message)
        except Exception as e:
            logger.error(f"OpenAI call failed: {e}")
            raise AIProviderError(str(e)) from e

    anthropic_key = os.getenv('ANTHROPIC_API_KEY')
    if anthropic_key:
        try:
            return _call_claude(anthropic_key, system_prompt, user_message)
        except Exception as e:
            logger.error(f"Claude call failed: {e}")
            raise AIProviderError(str(e)) from e

    raise AIProviderError("No AI provider configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")


def _call_claude(api_key: str, system_prompt: str, user_message: str):
    import anthropic
    model = _model('ANTHROPIC_MODEL', DEFAULT_ANTHROPIC_MODEL)
    client = anthropic.Anthropic(api_key=api_key)
    message = client.messages.create(
        model=model,
        max_tokens=MAX_TOKENS,
        temperature=TEMPERATURE,
        system=system_prompt,
        messages=[{"role": "user", "content": user_message}],
    )
    text = "".join(
        block.text for block in message.content if block.type == "text"
    )
    return (_clean_json(text), "claude", model)


def _call_openai(api_key: str, system_prompt: str, user_message: str):
    import openai
    model = _model('OPENAI_MODEL', DEFAULT_OPENAI_MODEL)
    client = openai.OpenAI(api_key=api_key)
    response = client.chat.completions.create(
        model=model,
        temperature=TEMPERATURE,
        max_tokens=MAX_TOKENS,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
    )
    text = response.choices[0].message.content
    return (_clean_json(text), "openai", model)
