# Generated migration for Site and its cached metrics

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Site',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('url', models.URLField(help_text='Base URL of the site')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('average_score', models.PositiveSmallIntegerField(blank=True, help_text='Rounded mean of the effective page scores (0-100)', null=True)),
                ('total_pages', models.PositiveIntegerField(default=0)),
                ('pages_with_scores', models.PositiveIntegerField(default=0, help_text='Pages whose effective score is present and greater than zero')),
                ('last_metrics_update', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sites', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'sites',
                'ordering': ['-created_at'],
                'unique_together': {('user', 'url')},
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('average_score__isnull', True), ('average_score__lte', 100), _connector='OR'), name='site_average_score_range'),
                ],
            },
        ),
    ]
