"""
API URL routing for optiscore_backend.
All API endpoints are prefixed with /api/v1/
"""
from django.urls import path, include

from .views import health_check

urlpatterns = [
    # Health check (no auth) - GET /api/v1/health/
    path('health/', health_check, name='health'),
    # Dashboard authentication
    path('auth/', include('accounts.urls')),
    # Sites and their cached metrics
    path('sites/', include('sites.urls')),
    # Pages, section ratings, recommendations and deployments
    path('pages/', include('seo.urls')),
]
