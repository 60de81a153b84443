"""
Site management views.
Handles CRUD operations for sites and their score metrics.
"""
import logging

from django.db import DatabaseError, IntegrityError
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from seo.services import build_scoring_services
from .models import Site
from .serializers import SiteSerializer
from .permissions import IsSiteOwner

logger = logging.getLogger(__name__)


class SiteViewSet(viewsets.ModelViewSet):
    """
    ViewSet for managing sites.

    list: GET /api/v1/sites/ - List all sites for current user
    create: POST /api/v1/sites/ - Create a new site
    retrieve: GET /api/v1/sites/{id}/ - Get site details
    update: PUT /api/v1/sites/{id}/ - Update site
    destroy: DELETE /api/v1/sites/{id}/ - Delete site
    metrics: GET /api/v1/sites/{id}/metrics/ - Cached score metrics
    recompute_metrics: POST /api/v1/sites/{id}/metrics/recompute/ - Rescore every page
    """
    serializer_class = SiteSerializer
    permission_classes = [IsAuthenticated, IsSiteOwner]

    def get_queryset(self):
        """List only the user's sites; detail routes let IsSiteOwner answer 403."""
        if self.action == 'list':
            return Site.objects.filter(user=self.request.user)
        return Site.objects.all()

    def perform_create(self, serializer):
        """Set the user when creating a site."""
        serializer.save(user=self.request.user)

    def create(self, request, *args, **kwargs):
        """Create a site with duplicate URL handling."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError:
            return Response(
                {'error': {
                    'code': 'DUPLICATE_SITE',
                    'message': 'A site with this URL already exists for your account',
                    'status': 400,
                }},
                status=status.HTTP_400_BAD_REQUEST
            )

        headers = self.get_success_headers(serializer.data)
        return Response(serializer.data, status=status.HTTP_201_CREATED, headers=headers)

    @action(detail=True, methods=['get'])
    def metrics(self, request, pk=None):
        """
        Cached site metrics, computed on first access.

        GET /api/v1/sites/{id}/metrics/
        """
        site = self.get_object()
        metrics = build_scoring_services().propagator.get_site_metrics(site.id)
        return Response({'site_id': site.id, **metrics.to_dict()})

    @action(detail=True, methods=['post'], url_path='metrics/recompute')
    def recompute_metrics(self, request, pk=None):
        """
        Rescore every page of the site and rebuild its metrics.

        POST /api/v1/sites/{id}/metrics/recompute/
        Body (optional): { "backfill_legacy": true }
        """
        site = self.get_object()
        backfill_legacy = bool(request.data.get('backfill_legacy', False))
        propagator = build_scoring_services().propagator
        try:
            result = propagator.update_all_pages_in_site(site.id, backfill_legacy=backfill_legacy)
            metrics = propagator.get_site_metrics(site.id)
        except DatabaseError as e:
            logger.exception(f"Failed to recompute metrics for site {site.id}")
            return Response(
                {'error': {
                    'code': 'DATABASE_ERROR',
                    'message': 'Could not recompute site metrics.',
                    'detail': str(e),
                    'status': 500,
                }},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response({
            'site_id': site.id,
            'summary': result.to_dict(),
            'metrics': metrics.to_dict(),
        })
