"""
Tests for the section-rating engine: parsing, point allocation, the rating
store, page scoring and the ingestion pipeline.
"""
import json
from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError

from seo.allocator import allocate_points, build_recommendation_set, points_remaining
from seo.exceptions import PointBudgetViolation
from seo.ingest import ingest_generator_payload
from seo.ratings import RatingStore
from seo.scoring import PageScoreAggregator, calculate_total_score, round_ratio
from seo.sections import (
    SECTION_TYPES,
    RecommendationItem,
    clamp_score,
    item_to_text,
    parse_generator_payload,
)
from seo.services import build_scoring_services

SCENARIO_A = {
    'title': 8, 'description': 6, 'headings': 10, 'content': 10,
    'schema': 10, 'images': 10, 'links': 10,
}


def _rec(title, priority='medium', impact=5):
    return {
        'priority': priority,
        'category': 'SEO',
        'title': title,
        'description': f'{title} in detail',
        'expectedImpact': impact,
        'implementation': 'Edit the page',
    }


def _payload(scores, recommendations=None):
    recommendations = recommendations or {}
    return {
        'sections': [
            {
                'sectionType': section_type,
                'currentScore': score,
                'issues': [],
                'recommendations': recommendations.get(section_type, []),
                'overallAssessment': f'{section_type} assessed',
                'estimatedImprovement': 10 - score,
            }
            for section_type, score in scores.items()
        ]
    }


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
def create_site(create_user):
    def _create_site(user=None, name="Test Site", url="https://example.com"):
        from sites.models import Site
        if user is None:
            user = create_user()
        return Site.objects.create(user=user, name=name, url=url)
    return _create_site


@pytest.fixture
def create_page(create_site):
    def _create_page(site=None, url="https://example.com/page", **kwargs):
        from seo.models import Page
        if site is None:
            site = create_site()
        return Page.objects.create(site=site, url=url, title=kwargs.pop('title', 'Test Page'), **kwargs)
    return _create_page


@pytest.fixture
def create_analysis():
    def _create_analysis(page):
        from seo.models import ContentAnalysis
        return ContentAnalysis.objects.create(page=page, llm_model_used='gpt-4o')
    return _create_analysis


@pytest.fixture
def store():
    return RatingStore()


class TestSections:

    def test_parse_fills_missing_sections(self):
        analyses = parse_generator_payload(_payload({'title': 8}))
        assert set(analyses) == set(SECTION_TYPES)
        assert analyses['title'].current_score == 8
        assert analyses['links'].current_score == 0
        assert analyses['links'].recommendations == []

    def test_parse_accepts_bare_list_and_json_string(self):
        records = _payload({'content': 7})['sections']
        assert parse_generator_payload(records)['content'].current_score == 7
        assert parse_generator_payload(json.dumps(records))['content'].current_score == 7

    def test_parse_drops_unknown_sections_and_later_duplicate_wins(self):
        payload = {'sections': [
            {'sectionType': 'title', 'currentScore': 3},
            {'sectionType': 'footer', 'currentScore': 9},
            {'sectionType': 'title', 'currentScore': 5},
        ]}
        analyses = parse_generator_payload(payload)
        assert 'footer' not in analyses
        assert analyses['title'].current_score == 5

    def test_parse_survives_garbage(self):
        for payload in (None, 42, 'not json', {'sections': 'nope'}, [None, 'x']):
            analyses = parse_generator_payload(payload)
            assert all(a.current_score == 0 for a in analyses.values())

    def test_clamp_score(self):
        assert clamp_score(11) == 10
        assert clamp_score(-3) == 0
        assert clamp_score('7') == 7
        assert clamp_score(6.6) == 7
        assert clamp_score(6.5) == 7
        assert clamp_score(7.5) == 8
        assert clamp_score('4.5') == 5
        assert clamp_score('nan') == 0
        assert clamp_score(float('inf')) == 0
        assert clamp_score(None) == 0
        assert clamp_score(True) == 0

    def test_recommendation_item_defaults(self):
        item = RecommendationItem.from_payload({'title': 'Add FAQ', 'priority': 'URGENT'})
        assert item.priority == 'medium'
        assert item.category == 'General'
        assert item.description == 'Add FAQ'
        assert RecommendationItem.from_payload({'priority': 'high'}) is None
        assert RecommendationItem.from_payload('Add FAQ') is None

    def test_item_to_text_precedence(self):
        assert item_to_text('  plain  ') == 'plain'
        assert item_to_text({'title': 'T', 'description': 'D'}) == 'T'
        assert item_to_text({'description': 'D'}) == 'D'
        assert item_to_text({'text': 'X'}) == 'X'
        assert item_to_text({'b': 1, 'a': 2}) == '{"a": 2, "b": 1}'
        assert item_to_text(None) == ''


class TestAllocator:

    def test_equal_priorities_split_evenly(self):
        recs = [_rec('A'), _rec('B'), _rec('C')]
        impacts = [item.expected_impact for item in allocate_points(7, recs)]
        assert impacts == [1, 1, 1]

    def test_remainder_goes_to_highest_priority(self):
        recs = [_rec('A', 'high'), _rec('B', 'medium'), _rec('C', 'low')]
        impacts = [item.expected_impact for item in allocate_points(6, recs)]
        assert impacts == [2, 1, 1]

    def test_remainder_follows_priority_not_position(self):
        recs = [_rec('A', 'low'), _rec('B', 'critical'), _rec('C', 'medium')]
        impacts = [item.expected_impact for item in allocate_points(5, recs)]
        assert impacts == [1, 2, 2]
        assert [item.title for item in allocate_points(5, recs)] == ['A', 'B', 'C']

    @pytest.mark.parametrize('score', range(0, 11))
    def test_impacts_always_sum_to_remaining_points(self, score):
        recs = [_rec('A', 'high', 9), _rec('B', 'low', 0), _rec('C', 'critical', 3), _rec('D')]
        items = allocate_points(score, recs)
        assert sum(item.expected_impact for item in items) == 10 - score

    def test_generator_impacts_are_ignored(self):
        items = allocate_points(8, [_rec('A', impact=9), _rec('B', impact=9)])
        assert [item.expected_impact for item in items] == [1, 1]

    def test_full_score_zeroes_impacts(self):
        items = allocate_points(10, [_rec('A', impact=3)])
        assert [item.expected_impact for item in items] == [0]
        assert allocate_points(10, []) == []

    def test_no_recommendations_gets_generic_one(self):
        items = allocate_points(4, [])
        assert len(items) == 1
        assert items[0].expected_impact == 6
        assert items[0].priority == 'high'

    def test_malformed_recommendations_are_dropped(self):
        items = allocate_points(7, [None, 'text', {'priority': 'high'}, _rec('Keep')])
        assert [item.title for item in items] == ['Keep']
        assert items[0].expected_impact == 3

    def test_out_of_range_score_is_clamped(self):
        assert points_remaining(15) == 0
        assert points_remaining(-4) == 10
        items = allocate_points(-4, [_rec('A'), _rec('B'), _rec('C')])
        assert sum(item.expected_impact for item in items) == 10

    def test_build_recommendation_set(self):
        rec_set = build_recommendation_set('title', 6, [_rec('A', 'low'), _rec('B', 'critical')])
        assert rec_set.aggregate_priority == 'critical'
        assert rec_set.estimated_impact == 4
        assert rec_set.items_as_dicts()[1]['expectedImpact'] == 2


class TestScoring:

    def test_round_ratio_rounds_half_up(self):
        assert round_ratio(1, 2) == 1
        assert round_ratio(5, 2) == 3
        assert round_ratio(1, 3) == 0
        assert round_ratio(7, 0) == 0

    def test_total_score_bounds(self):
        assert calculate_total_score({s: 10 for s in SECTION_TYPES}) == 100
        assert calculate_total_score({s: 0 for s in SECTION_TYPES}) == 0
        assert calculate_total_score({}) == 0

    def test_scenario_a(self):
        assert calculate_total_score(SCENARIO_A) == 91


@pytest.mark.django_db
class TestRatingStore:

    def test_unrated_page_returns_none(self, store, create_page):
        page = create_page()
        assert store.get_current_section_ratings(page.id) is None

    def test_missing_sections_default_to_zero(self, store, create_page, create_analysis):
        page = create_page()
        analysis = create_analysis(page)
        store.save_section_ratings(page.id, analysis.id, {'title': 8, 'bogus': 4})

        ratings = store.get_current_section_ratings(page.id)
        assert set(ratings) == set(SECTION_TYPES)
        assert ratings['title'] == 8
        assert ratings['content'] == 0

    def test_resave_keeps_history_fields(self, store, create_page, create_analysis):
        page = create_page()
        first = create_analysis(page)
        store.save_section_ratings(page.id, first.id, {'title': 4})
        store.record_deployment(page.id, 'title', 4, 7, 'New title')

        second = create_analysis(page)
        store.save_section_ratings(page.id, second.id, {'title': 6})

        rating = store.get_section_rating(page.id, 'title')
        assert rating.current_score == 6
        assert rating.previous_score == 4
        assert rating.improvement_count == 1
        assert rating.analysis_id == second.id
        assert page.section_ratings.count() == len(SECTION_TYPES)

    def test_deployment_bookkeeping(self, store, create_page, create_analysis):
        page = create_page()
        store.save_section_ratings(page.id, create_analysis(page).id, {'title': 4})

        first = store.record_deployment(page.id, 'title', 4, 9, 'Better title', model='gpt-4o', actor='a@b.c')
        rating = store.get_section_rating(page.id, 'title')
        assert first.score_improvement == 5
        assert rating.current_score == 9
        assert rating.previous_score == 4
        assert rating.improvement_count == 1
        assert rating.last_improved_at is not None

        store.record_deployment(page.id, 'title', 9, 10, 'Best title')
        rating.refresh_from_db()
        assert rating.improvement_count == 2
        assert rating.previous_score == 9

        history = store.get_section_improvement_history(page.id, 'title')
        assert [d.new_score for d in history] == [9, 10]
        assert [d.is_active for d in history] == [False, True]
        # other sections untouched
        assert store.get_section_rating(page.id, 'content').improvement_count == 0

    def test_deployment_reads_previous_score_from_stored_rating(self, store, create_page, create_analysis):
        page = create_page()
        store.save_section_ratings(page.id, create_analysis(page).id, {'title': 4})

        store.record_deployment(page.id, 'title', None, 7, 'Competing title')
        second = store.record_deployment(page.id, 'title', None, 9, 'Final title')

        history = store.get_section_improvement_history(page.id, 'title')
        assert [(d.previous_score, d.new_score) for d in history] == [(4, 7), (7, 9)]
        assert second.score_improvement == 2
        assert store.get_section_rating(page.id, 'title').previous_score == 7

    def test_first_deployment_without_previous_score_starts_at_zero(self, store, create_page):
        page = create_page()
        deployment = store.record_deployment(page.id, 'links', None, 3, 'Internal links')
        assert deployment.previous_score == 0
        assert deployment.score_improvement == 3

    def test_deployment_without_rating_creates_row(self, store, create_page):
        page = create_page()
        store.record_deployment(page.id, 'schema', 0, 6, '{"@type": "Article"}')
        assert store.get_current_section_ratings(page.id)['schema'] == 6
        assert store.get_section_rating(page.id, 'schema').improvement_count == 1

    def test_deployments_are_append_only(self, store, create_page):
        page = create_page()
        deployment = store.record_deployment(page.id, 'title', 0, 5, 'Title')
        deployment.new_score = 9
        with pytest.raises(ValueError):
            deployment.save()

    def test_recommendation_history_is_deduplicated(self, store, create_page, create_analysis):
        page = create_page()
        first = create_analysis(page)
        store.save_analysis(page.id, first.id, {'title': 6}, [
            build_recommendation_set('title', 6, [_rec('Add keyword'), _rec('Shorten title')]),
        ])
        second = create_analysis(page)
        store.save_analysis(page.id, second.id, {'title': 7}, [
            build_recommendation_set('title', 7, [_rec('Add brand name'), _rec('add  KEYWORD ')]),
        ])

        texts = store.get_section_recommendations(page.id, 'title')
        assert texts == ['Add brand name', 'add  KEYWORD', 'Shorten title']
        items = store.get_recommendation_items(page.id, 'title')
        assert [item['title'] for item in items] == ['Add brand name', 'add  KEYWORD']
        assert sum(item['expectedImpact'] for item in items) == 3

    def test_resaving_same_analysis_replaces_its_sets(self, store, create_page, create_analysis):
        from seo.models import SectionRecommendation
        page = create_page()
        analysis = create_analysis(page)
        store.save_section_ratings(page.id, analysis.id, {'title': 5})
        sets = [build_recommendation_set('title', 5, [_rec('A')])]
        store.save_section_recommendations(page.id, analysis.id, sets)
        store.save_section_recommendations(page.id, analysis.id, {'title': sets[0]})
        assert SectionRecommendation.objects.filter(page=page).count() == 1

    def test_unbalanced_set_is_rejected(self, store, create_page, create_analysis):
        page = create_page()
        analysis = create_analysis(page)
        store.save_section_ratings(page.id, analysis.id, {'title': 5})
        rec_set = build_recommendation_set('title', 5, [_rec('A')])
        rec_set.recommendations[0].expected_impact = 9

        with pytest.raises(PointBudgetViolation) as excinfo:
            store.save_section_recommendations(page.id, analysis.id, [rec_set])
        assert excinfo.value.expected == 5
        assert excinfo.value.actual == 9

    def test_save_analysis_rolls_back_ratings_on_bad_set(self, store, create_page, create_analysis):
        page = create_page()
        analysis = create_analysis(page)
        rec_set = build_recommendation_set('title', 5, [_rec('A')])
        rec_set.recommendations[0].expected_impact = 9

        with pytest.raises(PointBudgetViolation):
            store.save_analysis(page.id, analysis.id, {'title': 5}, [rec_set])
        assert store.get_current_section_ratings(page.id) is None

    def test_recommendation_lookup_survives_database_error(self, store, create_page, create_analysis):
        page = create_page()
        analysis = create_analysis(page)
        store.save_analysis(page.id, analysis.id, {'title': 6}, [
            build_recommendation_set('title', 6, [_rec('Add keyword')]),
        ])

        with patch.object(RatingStore, '_recommendations', side_effect=DatabaseError('connection lost')):
            assert store.get_section_recommendations(page.id, 'title') == []
        assert store.get_section_recommendations(page.id, 'title') == ['Add keyword']

    def test_unknown_section_has_no_recommendations(self, store, create_page):
        page = create_page()
        assert store.get_section_recommendations(page.id, 'title') == []
        assert store.get_recommendation_items(page.id, 'title') == []


class ExplodingPropagator:
    calls = 0

    def update_site_metrics(self, site_id):
        self.calls += 1
        raise RuntimeError('metrics backend down')


@pytest.mark.django_db
class TestPageScoreAggregator:

    def test_unrated_page_is_left_alone(self, store, create_page):
        page = create_page()
        assert PageScoreAggregator(store).update_page_score(page.id) is None
        page.refresh_from_db()
        assert page.page_score is None

    def test_update_caches_score_and_refreshes_site(self, create_page, create_analysis):
        services = build_scoring_services()
        page = create_page()
        services.store.save_section_ratings(page.id, create_analysis(page).id, SCENARIO_A)

        assert services.aggregator.update_page_score(page.id) == 91
        page.refresh_from_db()
        page.site.refresh_from_db()
        assert page.page_score == 91
        assert page.last_score_update is not None
        assert page.site.average_score == 91
        assert page.site.pages_with_scores == 1

    def test_propagation_failure_does_not_fail_scoring(self, store, create_page, create_analysis):
        page = create_page()
        store.save_section_ratings(page.id, create_analysis(page).id, {s: 10 for s in SECTION_TYPES})
        propagator = ExplodingPropagator()

        assert PageScoreAggregator(store, propagator=propagator).update_page_score(page.id) == 100
        assert propagator.calls == 1
        page.refresh_from_db()
        assert page.page_score == 100

    def test_cache_write_failure_propagates(self, store, create_page, create_analysis):
        page = create_page()
        store.save_section_ratings(page.id, create_analysis(page).id, SCENARIO_A)
        pages = MagicMock()
        pages.filter.return_value.update.side_effect = DatabaseError('disk full')
        propagator = ExplodingPropagator()

        with patch.object(PageScoreAggregator, '_pages', return_value=pages):
            with pytest.raises(DatabaseError):
                PageScoreAggregator(store, propagator=propagator).update_page_score(page.id)
        assert propagator.calls == 0
        page.refresh_from_db()
        assert page.page_score is None

    def test_get_page_score_fallbacks(self, store, create_page, create_analysis):
        aggregator = PageScoreAggregator(store)
        legacy = create_page(url='https://example.com/legacy', legacy_score=55)
        assert aggregator.get_page_score(legacy.id) == 55

        nothing = create_page(url='https://example.com/nothing', site=legacy.site)
        assert aggregator.get_page_score(nothing.id) == 0
        assert aggregator.get_page_score(999999) == 0

        rated = create_page(url='https://example.com/rated', site=legacy.site, legacy_score=20)
        store.save_section_ratings(rated.id, create_analysis(rated).id, SCENARIO_A)
        aggregator.update_page_score(rated.id)
        assert aggregator.get_page_score(rated.id) == 91


@pytest.mark.django_db
class TestIngest:

    def test_scenario_a_end_to_end(self, create_page):
        page = create_page()
        payload = _payload(SCENARIO_A, {
            'title': [_rec('Add keyword', 'high', 7), _rec('Trim length', 'low', 7)],
            'headings': [_rec('Already perfect', 'low', 2)],
        })

        result = ingest_generator_payload(page, payload, model='gpt-4o')

        assert result.page_score == 91
        assert result.section_ratings == SCENARIO_A
        assert result.recommendation_sets == 3
        page.refresh_from_db()
        assert page.page_score == 91
        assert page.last_analysis_at is not None
        analysis = page.analyses.get()
        assert analysis.overall_score == 91
        assert 'title: title assessed' in analysis.analysis_summary

        store = RatingStore()
        title_items = store.get_recommendation_items(page.id, 'title')
        assert [item['expectedImpact'] for item in title_items] == [1, 1]
        description_items = store.get_recommendation_items(page.id, 'description')
        assert description_items[0]['expectedImpact'] == 4
        assert store.get_recommendation_items(page.id, 'headings')[0]['expectedImpact'] == 0

    def test_reingest_is_idempotent(self, create_page):
        page = create_page()
        payload = _payload(SCENARIO_A, {'title': [_rec('Add keyword')]})
        ingest_generator_payload(page, payload)
        ingest_generator_payload(page, payload)

        page.refresh_from_db()
        assert page.page_score == 91
        assert page.section_ratings.count() == len(SECTION_TYPES)
        assert page.section_recommendations.filter(is_current=True).count() == 2
        assert RatingStore().get_section_recommendations(page.id, 'title')[0] == 'Add keyword'

    def test_garbage_payload_rates_everything_zero(self, create_page):
        page = create_page()
        result = ingest_generator_payload(page, 'definitely not json')
        assert result.page_score == 0
        assert set(result.section_ratings.values()) == {0}
        assert result.recommendation_sets == len(SECTION_TYPES)


@pytest.mark.django_db
class TestPopulateScoresCommand:

    def test_requires_confirm(self, create_page):
        page = create_page(legacy_score=40)
        out = StringIO()
        call_command('populate_scores', stdout=out)
        assert '--confirm' in out.getvalue()
        page.refresh_from_db()
        assert page.page_score is None

    def test_populates_scores_and_metrics(self, create_page, create_analysis):
        rated = create_page(url='https://example.com/rated')
        site = rated.site
        RatingStore().save_section_ratings(rated.id, create_analysis(rated).id, SCENARIO_A)
        legacy = create_page(site=site, url='https://example.com/legacy', legacy_score=40)
        create_page(site=site, url='https://example.com/empty')

        out = StringIO()
        call_command('populate_scores', '--confirm', stdout=out)

        legacy.refresh_from_db()
        site.refresh_from_db()
        assert legacy.page_score == 40
        assert site.total_pages == 3
        assert site.pages_with_scores == 2
        assert site.average_score == 66
        assert 'Score population complete.' in out.getvalue()

    def test_unknown_site(self):
        from django.core.management.base import CommandError
        with pytest.raises(CommandError):
            call_command('populate_scores', '--confirm', '--site', '424242', stdout=StringIO())
