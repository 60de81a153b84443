"""
Tests for sites app - Site management and cached score metrics.
"""
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from seo.ratings import RatingStore
from sites.metrics import (
    BatchResult,
    SiteMetricsPropagator,
    compute_site_metrics,
    effective_page_score,
)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_model():
    return get_user_model()


@pytest.fixture
def create_user(user_model):
    def _create_user(email="test@example.com", password="testpass123"):
        return user_model.objects.create_user(
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
def create_site(create_user):
    def _create_site(user=None, name="Test Site", url="https://example.com", **kwargs):
        from sites.models import Site
        if user is None:
            user = create_user()
        return Site.objects.create(user=user, name=name, url=url, **kwargs)
    return _create_site


@pytest.fixture
def add_pages():
    def _add_pages(site, *scores):
        """scores: (page_score, legacy_score) pairs."""
        from seo.models import Page
        return [
            Page.objects.create(
                site=site,
                url=f"{site.url}/page-{index}",
                page_score=page_score,
                legacy_score=legacy_score,
            )
            for index, (page_score, legacy_score) in enumerate(scores)
        ]
    return _add_pages


@pytest.fixture
def propagator():
    return SiteMetricsPropagator(RatingStore())


class TestMetricsMath:

    def test_effective_score_precedence(self):
        assert effective_page_score(80, 30) == 80
        assert effective_page_score(None, 30) == 30
        assert effective_page_score(0, 30) == 0
        assert effective_page_score(None, None) is None

    def test_scenario_b(self):
        metrics = compute_site_metrics([80, None, 60])
        assert (metrics.total_pages, metrics.pages_with_scores, metrics.average_score) == (3, 2, 70)

    def test_zero_scores_are_not_counted_as_scored(self):
        metrics = compute_site_metrics([0, 0, 50])
        assert (metrics.total_pages, metrics.pages_with_scores, metrics.average_score) == (3, 1, 50)

    def test_empty_site(self):
        metrics = compute_site_metrics([])
        assert (metrics.total_pages, metrics.pages_with_scores, metrics.average_score) == (0, 0, 0)

    def test_average_rounds_half_up(self):
        assert compute_site_metrics([70, 71]).average_score == 71

    def test_batch_result_merge(self):
        total = BatchResult(sites_processed=1, pages_scored=2)
        total.merge(BatchResult(sites_processed=1, pages_failed=1))
        assert total.to_dict()['sites_processed'] == 2
        assert total.pages_failed == 1


@pytest.mark.django_db
class TestSiteMetricsPropagator:

    def test_scenario_b_persisted(self, propagator, create_site, add_pages):
        site = create_site()
        add_pages(site, (80, None), (None, None), (None, 60))

        propagator.update_site_metrics(site.id)
        site.refresh_from_db()
        assert site.total_pages == 3
        assert site.pages_with_scores == 2
        assert site.average_score == 70
        assert site.last_metrics_update is not None

    def test_update_is_idempotent(self, propagator, create_site, add_pages):
        site = create_site()
        add_pages(site, (91, None), (33, 10), (None, 45), (0, None))

        first = propagator.update_site_metrics(site.id)
        second = propagator.update_site_metrics(site.id)
        assert (first.average_score, first.total_pages, first.pages_with_scores) == \
            (second.average_score, second.total_pages, second.pages_with_scores)

    def test_get_metrics_computes_through(self, propagator, create_site, add_pages):
        site = create_site()
        add_pages(site, (50, None))
        assert site.average_score is None

        metrics = propagator.get_site_metrics(site.id)
        assert metrics.average_score == 50
        site.refresh_from_db()
        assert site.average_score == 50

    def test_get_metrics_returns_cache(self, propagator, create_site, add_pages):
        site = create_site(average_score=12, total_pages=4, pages_with_scores=1)
        add_pages(site, (90, None))
        assert propagator.get_site_metrics(site.id).average_score == 12

    def test_zero_average_counts_as_cached(self, propagator, create_site, add_pages):
        site = create_site(average_score=0, total_pages=1, pages_with_scores=0)
        add_pages(site, (90, None))
        assert site.has_cached_metrics
        assert propagator.get_site_metrics(site.id).average_score == 0

    def test_missing_site(self, propagator):
        assert propagator.get_site_metrics(424242) is None
        assert propagator.update_site_metrics(424242).total_pages == 0

    def test_update_all_pages_in_site(self, propagator, create_site, add_pages):
        from seo.models import ContentAnalysis
        site = create_site()
        rated, legacy, empty = add_pages(site, (None, None), (None, 40), (None, None))
        analysis = ContentAnalysis.objects.create(page=rated)
        RatingStore().save_section_ratings(rated.id, analysis.id, {'title': 7, 'content': 7})

        result = propagator.update_all_pages_in_site(site.id, backfill_legacy=True)
        assert result.pages_processed == 3
        assert result.pages_scored == 1
        assert result.pages_from_legacy == 1
        assert result.pages_unrated == 1

        rated.refresh_from_db()
        legacy.refresh_from_db()
        site.refresh_from_db()
        assert rated.page_score == 20
        assert legacy.page_score == 40
        assert (site.total_pages, site.pages_with_scores, site.average_score) == (3, 2, 30)

    def test_update_all_pages_without_backfill(self, propagator, create_site, add_pages):
        site = create_site()
        legacy, = add_pages(site, (None, 40))
        result = propagator.update_all_pages_in_site(site.id)
        assert result.pages_unrated == 1
        legacy.refresh_from_db()
        assert legacy.page_score is None
        site.refresh_from_db()
        assert site.average_score == 40

    def test_failing_page_does_not_abort_batch(self, create_site, add_pages):
        class FlakyStore(RatingStore):
            def get_current_section_ratings(self, page_id):
                if page_id == broken.id:
                    raise RuntimeError('boom')
                return {'title': 10}

        site = create_site()
        broken, healthy = add_pages(site, (None, None), (None, None))
        result = SiteMetricsPropagator(FlakyStore()).update_all_pages_in_site(site.id)

        assert result.pages_failed == 1
        assert result.pages_scored == 1
        healthy.refresh_from_db()
        assert healthy.page_score == 14

    def test_update_all_scores_skips_inactive_sites(self, propagator, create_user, create_site, add_pages):
        user = create_user()
        active = create_site(user=user, url='https://active.example.com')
        inactive = create_site(user=user, url='https://inactive.example.com', is_active=False)
        add_pages(active, (None, 30))
        add_pages(inactive, (None, 30))

        result = propagator.update_all_scores(backfill_legacy=True)
        assert result.sites_processed == 1
        assert result.pages_from_legacy == 1
        inactive.refresh_from_db()
        assert inactive.average_score is None


@pytest.mark.django_db
class TestSiteManagement:

    def test_list_sites(self, authenticated_client, create_site):
        client, user = authenticated_client
        site = create_site(user=user)

        response = client.get('/api/v1/sites/')
        assert response.status_code == 200
        assert len(response.data['results']) == 1
        assert response.data['results'][0]['name'] == site.name

    def test_create_site(self, authenticated_client):
        from sites.models import Site
        client, user = authenticated_client

        response = client.post(
            '/api/v1/sites/',
            data={'name': 'New Site', 'url': 'https://newsite.com'},
            format='json'
        )
        assert response.status_code == 201
        assert Site.objects.filter(name='New Site').exists()
        assert response.data['average_score'] is None

    def test_create_site_duplicate_url(self, authenticated_client, create_site):
        client, user = authenticated_client
        create_site(user=user, url='https://duplicate.com')

        response = client.post(
            '/api/v1/sites/',
            data={'name': 'Another Site', 'url': 'https://duplicate.com'},
            format='json'
        )
        assert response.status_code == 400

    def test_metrics_cannot_be_written(self, authenticated_client, create_site):
        client, user = authenticated_client
        site = create_site(user=user)

        response = client.put(
            f'/api/v1/sites/{site.id}/',
            data={'name': 'Updated Site', 'url': site.url, 'average_score': 99},
            format='json'
        )
        assert response.status_code == 200
        site.refresh_from_db()
        assert site.name == 'Updated Site'
        assert site.average_score is None

    def test_delete_site(self, authenticated_client, create_site):
        from sites.models import Site
        client, user = authenticated_client
        site = create_site(user=user)

        response = client.delete(f'/api/v1/sites/{site.id}/')
        assert response.status_code == 204
        assert not Site.objects.filter(id=site.id).exists()

    def test_site_metrics(self, authenticated_client, create_site, add_pages):
        client, user = authenticated_client
        site = create_site(user=user)
        add_pages(site, (80, None), (None, None), (None, 60))

        response = client.get(f'/api/v1/sites/{site.id}/metrics/')
        assert response.status_code == 200
        assert response.data['site_id'] == site.id
        assert response.data['average_score'] == 70
        assert response.data['total_pages'] == 3
        assert response.data['pages_with_scores'] == 2

    def test_other_users_site_metrics(self, authenticated_client, create_user, create_site):
        client, _ = authenticated_client
        site = create_site(user=create_user(email='other@example.com'))
        response = client.get(f'/api/v1/sites/{site.id}/metrics/')
        assert response.status_code == 403

    def test_recompute_metrics(self, authenticated_client, create_site, add_pages):
        client, user = authenticated_client
        site = create_site(user=user)
        add_pages(site, (None, 40), (None, None))

        response = client.post(
            f'/api/v1/sites/{site.id}/metrics/recompute/',
            data={'backfill_legacy': True},
            format='json'
        )
        assert response.status_code == 200
        assert response.data['summary']['pages_processed'] == 2
        assert response.data['summary']['pages_from_legacy'] == 1
        assert response.data['metrics']['average_score'] == 40
        assert response.data['metrics']['last_metrics_update'] is not None
