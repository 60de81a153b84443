"""
Views for pages and their section ratings.
"""
import logging

from django.db import DatabaseError
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ai.providers import AIProviderError
from ai.section_analysis import generate_section_analysis
from sites.metrics import effective_page_score
from sites.models import Site

from .ingest import ingest_generator_payload
from .models import Page
from .sections import SECTION_TYPES, is_section_type
from .serializers import (
    ContentDeploymentSerializer,
    DeploymentRequestSerializer,
    PageSerializer,
    SectionRatingSerializer,
)
from .services import build_scoring_services

logger = logging.getLogger(__name__)


def _error(code, message, http_status, detail=None):
    body = {'code': code, 'message': message, 'status': http_status}
    if detail is not None:
        body['detail'] = detail
    return Response({'error': body}, status=http_status)


class LargeResultsSetPagination(PageNumberPagination):
    """Allow up to 1000 pages per request for dashboard views."""
    page_size = 1000
    page_size_query_param = 'page_size'
    max_page_size = 5000


class PageViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for pages and the section-rating engine.

    list: GET /api/v1/pages/ - List pages (filtered by site_id)
    retrieve: GET /api/v1/pages/{id}/ - Get page details
    section_ratings: GET /api/v1/pages/{id}/section-ratings/
    section_recommendations: GET /api/v1/pages/{id}/section-recommendations/{section_type}/
    analysis: POST /api/v1/pages/{id}/analysis/
    deployments: POST /api/v1/pages/{id}/deployments/
    deployment_history: GET /api/v1/pages/{id}/deployments/{section_type}/
    """
    serializer_class = PageSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = LargeResultsSetPagination

    def get_queryset(self):
        """Return pages for sites owned by the current user."""
        user_sites = Site.objects.filter(user=self.request.user)
        queryset = Page.objects.filter(site__in=user_sites)

        site_id = self.request.query_params.get('site_id')
        if site_id:
            queryset = queryset.filter(site_id=site_id)
        return queryset.select_related('site')

    def _get_page_or_error(self, pk):
        """Returns (page, error_response)."""
        try:
            page = Page.objects.select_related('site').filter(pk=pk).first()
        except (TypeError, ValueError):
            page = None
        if page is None:
            return None, _error('PAGE_NOT_FOUND', 'Page not found.', status.HTTP_404_NOT_FOUND)
        if page.site.user != self.request.user:
            return None, _error('FORBIDDEN', 'Permission denied.', status.HTTP_403_FORBIDDEN)
        return page, None

    @action(detail=True, methods=['get'], url_path='section-ratings')
    def section_ratings(self, request, pk=None):
        """
        Current section ratings, recommendations and page score.

        section_ratings is null when the page has not been analyzed yet.
        """
        page, error = self._get_page_or_error(pk)
        if error:
            return error

        services = build_scoring_services()
        try:
            ratings = services.store.get_current_section_ratings(page.pk)
            recommendations = {
                section_type: services.store.get_section_recommendations(page.pk, section_type)
                for section_type in SECTION_TYPES
            }
            if ratings is None:
                page_score = effective_page_score(page.page_score, page.legacy_score)
            else:
                page_score = services.aggregator.get_page_score(page.pk)
        except DatabaseError as e:
            logger.exception(f"Failed to load section ratings for page {page.pk}")
            return _error('DATABASE_ERROR', 'Could not load section ratings.',
                          status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

        return Response({
            'page_id': page.pk,
            'section_ratings': ratings,
            'section_recommendations': recommendations,
            'page_score': page_score,
        })

    @action(detail=True, methods=['get'],
            url_path=r'section-recommendations/(?P<section_type>[^/.]+)')
    def section_recommendations(self, request, pk=None, section_type=None):
        page, error = self._get_page_or_error(pk)
        if error:
            return error
        if not is_section_type(section_type):
            return _error('BAD_REQUEST', f"Unknown section type '{section_type}'.",
                          status.HTTP_400_BAD_REQUEST, detail={'allowed': list(SECTION_TYPES)})

        store = build_scoring_services().store
        rating = store.get_section_rating(page.pk, section_type)
        return Response({
            'page_id': page.pk,
            'section_type': section_type,
            'rating': SectionRatingSerializer(rating).data if rating else None,
            'recommendations': store.get_section_recommendations(page.pk, section_type),
            'items': store.get_recommendation_items(page.pk, section_type),
        })

    @action(detail=True, methods=['post'])
    def analysis(self, request, pk=None):
        """
        Ingest a section analysis for the page.

        POST /api/v1/pages/{id}/analysis/
        Body: generator payload ({"sections": [...], "model": "..."} or a
        bare list). An empty body asks the configured AI provider for one.
        """
        page, error = self._get_page_or_error(pk)
        if error:
            return error

        payload = request.data
        model = ''
        if isinstance(payload, dict):
            model = str(payload.get('model') or '')
        if not payload:
            try:
                payload, model = generate_section_analysis(page)
            except AIProviderError as e:
                return _error('AI_PROVIDER_ERROR', 'Section analysis could not be generated.',
                              status.HTTP_502_BAD_GATEWAY, detail=str(e))

        try:
            result = ingest_generator_payload(page, payload, model=model)
        except DatabaseError as e:
            logger.exception(f"Failed to store analysis for page {page.pk}")
            return _error('DATABASE_ERROR', 'Could not store the analysis.',
                          status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

        return Response({
            'page_id': page.pk,
            'analysis_id': result.analysis_id,
            'section_ratings': result.section_ratings,
            'page_score': result.page_score,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def deployments(self, request, pk=None):
        """
        Record deployed content for a section and rescore the page.

        POST /api/v1/pages/{id}/deployments/
        Body: { "section_type", "new_score", "deployed_content", "ai_model"? }
        """
        page, error = self._get_page_or_error(pk)
        if error:
            return error

        serializer = DeploymentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _error('BAD_REQUEST', 'Invalid deployment.', status.HTTP_400_BAD_REQUEST,
                          detail=serializer.errors)
        data = serializer.validated_data

        services = build_scoring_services()
        try:
            deployment = services.store.record_deployment(
                page.pk,
                data['section_type'],
                None,
                data['new_score'],
                data['deployed_content'],
                model=data.get('ai_model', ''),
                actor=request.user.email,
            )
            page_score = services.aggregator.update_page_score(page.pk)
        except DatabaseError as e:
            logger.exception(f"Failed to record deployment for page {page.pk}")
            return _error('DATABASE_ERROR', 'Could not record the deployment.',
                          status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

        return Response({
            'section_type': deployment.section_type,
            'previous_score': deployment.previous_score,
            'new_score': deployment.new_score,
            'score_improvement': deployment.score_improvement,
            'page_score': page_score,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path=r'deployments/(?P<section_type>[^/.]+)')
    def deployment_history(self, request, pk=None, section_type=None):
        page, error = self._get_page_or_error(pk)
        if error:
            return error
        if not is_section_type(section_type):
            return _error('BAD_REQUEST', f"Unknown section type '{section_type}'.",
                          status.HTTP_400_BAD_REQUEST, detail={'allowed': list(SECTION_TYPES)})

        history = build_scoring_services().store.get_section_improvement_history(page.pk, section_type)
        return Response({
            'page_id': page.pk,
            'section_type': section_type,
            'deployments': ContentDeploymentSerializer(history, many=True).data,
        })
