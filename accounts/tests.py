"""
Tests for accounts app authentication.
"""
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken


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


@pytest.mark.django_db
class TestAuthentication:

    def test_obtain_token(self, api_client, create_user):
        user = create_user()
        response = api_client.post('/api/v1/auth/token/', {
            'email': user.email,
            'password': 'testpass123'
        }, format='json')
        assert response.status_code == 200
        assert 'access' in response.data
        assert 'refresh' in response.data

    def test_obtain_token_invalid_credentials(self, api_client, create_user):
        create_user()
        response = api_client.post('/api/v1/auth/token/', {
            'email': 'test@example.com',
            'password': 'wrongpassword'
        }, format='json')
        assert response.status_code == 401

    def test_refresh_token(self, api_client, create_user):
        refresh = RefreshToken.for_user(create_user())
        response = api_client.post('/api/v1/auth/token/refresh/', {'refresh': str(refresh)}, format='json')
        assert response.status_code == 200
        assert 'access' in response.data

    def test_me(self, authenticated_client):
        from sites.models import Site
        client, user = authenticated_client
        Site.objects.create(user=user, name='Mine', url='https://mine.example.com')

        response = client.get('/api/v1/auth/me/')
        assert response.status_code == 200
        assert response.data['user']['email'] == user.email
        assert response.data['user']['site_count'] == 1

    def test_me_requires_authentication(self, api_client):
        response = api_client.get('/api/v1/auth/me/')
        assert response.status_code == 401


class TestHealth:

    def test_health_check(self, client):
        response = client.get('/api/v1/health/')
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'
