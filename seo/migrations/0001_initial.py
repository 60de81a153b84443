# Generated migration for pages and the section-rating engine

import uuid

import django.db.models.deletion
from django.db import migrations, models


SECTION_TYPE_CHOICES = [
    ('title', 'Title'),
    ('description', 'Meta Description'),
    ('headings', 'Headings'),
    ('content', 'Content'),
    ('schema', 'Schema Markup'),
    ('images', 'Images'),
    ('links', 'Links'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('sites', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Page',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('url', models.URLField(max_length=2048)),
                ('title', models.CharField(blank=True, max_length=500)),
                ('meta_description', models.TextField(blank=True)),
                ('content_snapshot', models.JSONField(blank=True, help_text='Last crawled page content (title, headings, body text, ...)', null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('archived', 'Archived')], default='active', max_length=20)),
                ('page_score', models.PositiveSmallIntegerField(blank=True, help_text='Cached 0-100 score derived from the seven section ratings', null=True)),
                ('last_score_update', models.DateTimeField(blank=True, null=True)),
                ('legacy_score', models.PositiveSmallIntegerField(blank=True, help_text='Whole-page score from before section ratings existed', null=True)),
                ('last_analysis_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('site', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pages', to='sites.site')),
            ],
            options={
                'db_table': 'pages',
                'ordering': ['-created_at'],
                'unique_together': {('site', 'url')},
                'indexes': [
                    models.Index(fields=['site', 'status'], name='pages_site_id_5f4b1c_idx'),
                    models.Index(fields=['url'], name='pages_url_8a3e2d_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('page_score__isnull', True), ('page_score__lte', 100), _connector='OR'), name='page_score_range'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ContentAnalysis',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('overall_score', models.PositiveSmallIntegerField(default=0)),
                ('llm_model_used', models.CharField(blank=True, max_length=128)),
                ('page_summary', models.TextField(blank=True)),
                ('analysis_summary', models.TextField(blank=True)),
                ('analyzed_at', models.DateTimeField(auto_now_add=True)),
                ('page', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='analyses', to='seo.page')),
            ],
            options={
                'db_table': 'content_analysis',
                'ordering': ['-analyzed_at'],
                'indexes': [
                    models.Index(fields=['page', 'analyzed_at'], name='content_ana_page_id_3c9d7e_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SectionRating',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('section_type', models.CharField(choices=SECTION_TYPE_CHOICES, max_length=32)),
                ('current_score', models.PositiveSmallIntegerField(default=0)),
                ('max_score', models.PositiveSmallIntegerField(default=10, editable=False)),
                ('previous_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('improvement_count', models.PositiveIntegerField(default=0)),
                ('last_improved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('analysis', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_ratings', to='seo.contentanalysis')),
                ('page', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_ratings', to='seo.page')),
            ],
            options={
                'db_table': 'content_ratings',
                'unique_together': {('page', 'section_type')},
                'indexes': [
                    models.Index(fields=['page'], name='content_rat_page_id_7b21aa_idx'),
                    models.Index(fields=['analysis'], name='content_rat_analysi_0e6f4c_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('current_score__lte', 10)), name='section_rating_score_range'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SectionRecommendation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('section_type', models.CharField(choices=SECTION_TYPE_CHOICES, max_length=32)),
                ('recommendations', models.JSONField(default=list)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='medium', max_length=16)),
                ('estimated_impact', models.PositiveSmallIntegerField(default=0)),
                ('is_current', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('analysis', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_recommendations', to='seo.contentanalysis')),
                ('page', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_recommendations', to='seo.page')),
            ],
            options={
                'db_table': 'content_recommendations',
                'ordering': ['-created_at'],
                'unique_together': {('analysis', 'section_type')},
                'indexes': [
                    models.Index(fields=['page', 'section_type'], name='content_rec_page_id_41d2b9_idx'),
                    models.Index(fields=['page', 'is_current'], name='content_rec_page_id_c83f05_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ContentDeployment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('section_type', models.CharField(choices=SECTION_TYPE_CHOICES, max_length=32)),
                ('previous_score', models.PositiveSmallIntegerField()),
                ('new_score', models.PositiveSmallIntegerField()),
                ('score_improvement', models.SmallIntegerField()),
                ('deployed_content', models.TextField()),
                ('ai_model', models.CharField(blank=True, max_length=128)),
                ('deployed_by', models.CharField(blank=True, max_length=255)),
                ('status', models.CharField(choices=[('deployed', 'Deployed'), ('draft', 'Draft'), ('archived', 'Archived')], default='deployed', max_length=32)),
                ('is_active', models.BooleanField(default=True)),
                ('deployed_at', models.DateTimeField(auto_now_add=True)),
                ('page', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='deployments', to='seo.page')),
            ],
            options={
                'db_table': 'content_deployments',
                'ordering': ['deployed_at'],
                'indexes': [
                    models.Index(fields=['page', 'deployed_at'], name='content_dep_page_id_9a0e12_idx'),
                    models.Index(fields=['page', 'section_type', 'is_active'], name='content_dep_page_id_5d7c3b_idx'),
                ],
            },
        ),
    ]
