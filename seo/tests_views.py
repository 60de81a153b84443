"""
API tests for page section ratings, analysis ingestion and deployments.
"""
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from seo.sections import SECTION_TYPES

SCENARIO_A_PAYLOAD = {
    'model': 'gpt-4o',
    'sections': [
        {'sectionType': 'title', 'currentScore': 8, 'recommendations': [
            {'priority': 'high', 'title': 'Add primary keyword', 'description': 'Lead with it'},
            {'priority': 'low', 'title': 'Trim to 60 characters', 'description': 'Avoid truncation'},
        ]},
        {'sectionType': 'description', 'currentScore': 6, 'recommendations': []},
        {'sectionType': 'headings', 'currentScore': 10},
        {'sectionType': 'content', 'currentScore': 10},
        {'sectionType': 'schema', 'currentScore': 10},
        {'sectionType': 'images', 'currentScore': 10},
        {'sectionType': 'links', 'currentScore': 10},
    ],
}


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def create_user():
    def _create_user(email="test@example.com", password="testpass123"):
        return get_user_model().objects.create_user(
            email=email,
            username=email,
            password=password
        )
    return _create_user


@pytest.fixture
def authenticated_client(api_client, create_user):
    user = create_user()
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(refresh.access_token)}')
    return api_client, user


@pytest.fixture
def create_page():
    def _create_page(user, url="https://example.com/page", **kwargs):
        from sites.models import Site
        from seo.models import Page
        site, _ = Site.objects.get_or_create(user=user, url="https://example.com", defaults={'name': 'Test Site'})
        return Page.objects.create(site=site, url=url, title='Test Page', **kwargs)
    return _create_page


@pytest.mark.django_db
class TestSectionRatingsAPI:

    def test_requires_authentication(self, api_client, create_user, create_page):
        page = create_page(create_user())
        response = api_client.get(f'/api/v1/pages/{page.id}/section-ratings/')
        assert response.status_code == 401

    def test_unanalyzed_page(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user, legacy_score=42)

        response = client.get(f'/api/v1/pages/{page.id}/section-ratings/')
        assert response.status_code == 200
        assert response.data['section_ratings'] is None
        assert response.data['page_score'] == 42
        assert response.data['section_recommendations'] == {s: [] for s in SECTION_TYPES}

    def test_missing_page(self, authenticated_client):
        client, _ = authenticated_client
        response = client.get('/api/v1/pages/999999/section-ratings/')
        assert response.status_code == 404
        assert response.data['error']['code'] == 'PAGE_NOT_FOUND'

    def test_other_users_page(self, authenticated_client, create_user, create_page):
        client, _ = authenticated_client
        page = create_page(create_user(email='other@example.com'))
        response = client.get(f'/api/v1/pages/{page.id}/section-ratings/')
        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'

    def test_ingest_then_read(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)

        response = client.post(f'/api/v1/pages/{page.id}/analysis/', SCENARIO_A_PAYLOAD, format='json')
        assert response.status_code == 201
        assert response.data['page_score'] == 91
        assert response.data['section_ratings']['title'] == 8

        response = client.get(f'/api/v1/pages/{page.id}/section-ratings/')
        assert response.status_code == 200
        assert response.data['page_score'] == 91
        assert set(response.data['section_ratings']) == set(SECTION_TYPES)
        assert response.data['section_recommendations']['title'] == [
            'Add primary keyword', 'Trim to 60 characters',
        ]
        assert response.data['section_recommendations']['description'] == ['Strengthen this section']

    def test_section_recommendations(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        client.post(f'/api/v1/pages/{page.id}/analysis/', SCENARIO_A_PAYLOAD, format='json')

        response = client.get(f'/api/v1/pages/{page.id}/section-recommendations/title/')
        assert response.status_code == 200
        assert response.data['rating']['current_score'] == 8
        assert response.data['rating']['points_remaining'] == 2
        assert [item['expectedImpact'] for item in response.data['items']] == [1, 1]

    def test_unknown_section(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        response = client.get(f'/api/v1/pages/{page.id}/section-recommendations/footer/')
        assert response.status_code == 400
        assert 'title' in response.data['error']['detail']['allowed']

    def test_empty_body_uses_generator(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        payload = {k: v for k, v in SCENARIO_A_PAYLOAD.items() if k != 'model'}

        with patch('seo.views.generate_section_analysis', return_value=(payload, 'gpt-4o')) as generate:
            response = client.post(f'/api/v1/pages/{page.id}/analysis/', {}, format='json')

        assert response.status_code == 201
        assert response.data['page_score'] == 91
        generate.assert_called_once()
        assert page.analyses.get().llm_model_used == 'gpt-4o'

    def test_generator_not_configured(self, authenticated_client, create_page, monkeypatch):
        monkeypatch.delenv('OPENAI_API_KEY', raising=False)
        monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
        client, user = authenticated_client
        page = create_page(user)

        response = client.post(f'/api/v1/pages/{page.id}/analysis/', {}, format='json')
        assert response.status_code == 502
        assert response.data['error']['code'] == 'AI_PROVIDER_ERROR'

    def test_list_pages_shows_scores(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        client.post(f'/api/v1/pages/{page.id}/analysis/', SCENARIO_A_PAYLOAD, format='json')

        response = client.get('/api/v1/pages/')
        assert response.status_code == 200
        assert response.data['results'][0]['page_score'] == 91


@pytest.mark.django_db
class TestDeploymentsAPI:

    def test_deploy_moves_rating_and_page_score(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        client.post(f'/api/v1/pages/{page.id}/analysis/', SCENARIO_A_PAYLOAD, format='json')

        response = client.post(f'/api/v1/pages/{page.id}/deployments/', {
            'section_type': 'title',
            'new_score': 10,
            'deployed_content': 'Primary Keyword | Brand',
            'ai_model': 'gpt-4o',
        }, format='json')

        assert response.status_code == 201
        assert response.data['previous_score'] == 8
        assert response.data['new_score'] == 10
        assert response.data['score_improvement'] == 2
        # (10 + 6 + 50) / 70
        assert response.data['page_score'] == 94

        page.refresh_from_db()
        page.site.refresh_from_db()
        assert page.page_score == 94
        assert page.site.average_score == 94

        response = client.get(f'/api/v1/pages/{page.id}/deployments/title/')
        assert response.status_code == 200
        deployments = response.data['deployments']
        assert len(deployments) == 1
        assert deployments[0]['deployed_by'] == user.email
        assert deployments[0]['is_active'] is True

    def test_concurrent_deployment_chains_previous_score(self, authenticated_client, create_page):
        from seo.models import ContentDeployment
        from seo.ratings import RatingStore

        client, user = authenticated_client
        page = create_page(user)
        client.post(f'/api/v1/pages/{page.id}/analysis/', SCENARIO_A_PAYLOAD, format='json')
        original = RatingStore.record_deployment
        competing = []

        def deploy_after_competitor(self, *args, **kwargs):
            if not competing:
                competing.append(original(self, page.pk, 'description', None, 7, 'Competing copy'))
            return original(self, *args, **kwargs)

        with patch.object(RatingStore, 'record_deployment', deploy_after_competitor):
            response = client.post(f'/api/v1/pages/{page.id}/deployments/', {
                'section_type': 'description',
                'new_score': 9,
                'deployed_content': 'Final copy',
            }, format='json')

        assert response.status_code == 201
        history = list(ContentDeployment.objects.filter(
            page=page, section_type='description').order_by('pk'))
        assert [(d.previous_score, d.new_score) for d in history] == [(6, 7), (7, 9)]
        assert history[1].previous_score == history[0].new_score
        assert response.data['score_improvement'] == 2

    def test_invalid_deployment(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        response = client.post(f'/api/v1/pages/{page.id}/deployments/', {
            'section_type': 'footer',
            'new_score': 11,
        }, format='json')
        assert response.status_code == 400
        assert set(response.data['error']['detail']) == {'section_type', 'new_score', 'deployed_content'}

    def test_history_for_unknown_section(self, authenticated_client, create_page):
        client, user = authenticated_client
        page = create_page(user)
        response = client.get(f'/api/v1/pages/{page.id}/deployments/footer/')
        assert response.status_code == 400
