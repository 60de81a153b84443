"""
Tests for the AI provider adapter and the section analysis generator.
Provider SDK clients are mocked; no network calls are made.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from ai.providers import AIProviderError, _clean_json, call_ai
from ai.section_analysis import BODY_TEXT_LIMIT, build_page_context, generate_section_analysis

SECTIONS_JSON = '{"sections": [{"sectionType": "title", "currentScore": 7}]}'


def _page(**overrides):
    fields = {
        'pk': 1,
        'url': 'https://example.com/page',
        'title': 'Example',
        'meta_description': '',
        'content_snapshot': {
            'body_text': 'x' * (BODY_TEXT_LIMIT + 500),
            'headings': ['H1', 'H2'],
            'images': [{'src': 'a.png', 'alt': 'A'}, {'src': 'b.png'}],
            'links': ['/a', '/b', '/c'],
        },
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def no_provider_keys(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)


class TestProviders:

    def test_clean_json_strips_fences(self):
        assert _clean_json('```json\n{"a": 1}\n```') == {'a': 1}
        assert _clean_json('{"a": 1}') == {'a': 1}

    def test_no_provider_configured(self, no_provider_keys):
        with pytest.raises(AIProviderError):
            call_ai('system', {}, 'section_analysis')

    def test_openai_is_primary(self, no_provider_keys, monkeypatch):
        monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test')
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=SECTIONS_JSON))]
        )

        with patch('openai.OpenAI', return_value=client):
            parsed, provider, model = call_ai('system', {'url': 'x'}, 'section_analysis')

        assert provider == 'openai'
        assert model == 'gpt-4o'
        assert parsed['sections'][0]['sectionType'] == 'title'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs['response_format'] == {'type': 'json_object'}

    def test_claude_fallback(self, no_provider_keys, monkeypatch):
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test')
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type='text', text=f'```json\n{SECTIONS_JSON}\n```')]
        )

        with patch('anthropic.Anthropic', return_value=client):
            parsed, provider, _ = call_ai('system', {}, 'section_analysis')

        assert provider == 'claude'
        assert parsed['sections'][0]['currentScore'] == 7

    def test_provider_failure_is_wrapped(self, no_provider_keys, monkeypatch):
        monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError('rate limited')

        with patch('openai.OpenAI', return_value=client):
            with pytest.raises(AIProviderError, match='rate limited'):
                call_ai('system', {}, 'section_analysis')


class TestSectionAnalysis:

    def test_context(self):
        context = build_page_context(_page())
        assert len(context['main_content']) == BODY_TEXT_LIMIT
        assert context['meta_description'] == 'No meta description'
        assert context['image_count'] == 2
        assert context['images_with_alt'] == 1
        assert context['link_count'] == 3
        assert len(context['sections']) == 7

    def test_context_without_snapshot(self):
        context = build_page_context(_page(content_snapshot=None, title=''))
        assert context['title'] == 'No title'
        assert context['main_content'] == 'No content'

    def test_generate_returns_payload_and_model(self):
        payload = {'sections': []}
        with patch('ai.section_analysis.call_ai', return_value=(payload, 'openai', 'gpt-4o')) as mocked:
            result = generate_section_analysis(_page())

        assert result == (payload, 'gpt-4o')
        system_prompt, context, action = mocked.call_args.args
        assert 'sectionType' in system_prompt
        assert context['url'] == 'https://example.com/page'
        assert action == 'section_analysis'
