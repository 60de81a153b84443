"""
Management command to rebuild cached page scores and site metrics.
Usage: python manage.py populate_scores --confirm [--site ID]
"""
from django.core.management.base import BaseCommand, CommandError

from seo.services import build_scoring_services
from sites.models import Site


class Command(BaseCommand):
    help = (
        'Recompute every page score from its section ratings, fall back to the '
        'legacy score for unrated pages, then rebuild site metrics.'
    )

    def add_arguments(self, parser):
        parser.add_argument('--confirm', action='store_true',
                            help='Actually run; without it the command only prints a warning.')
        parser.add_argument('--site', type=int, help='Only process this site id.')
        parser.add_argument('--database', default='default', help='Database alias to use.')

    def handle(self, *args, **options):
        if not options['confirm']:
            self.stdout.write(self.style.WARNING(
                'This rewrites cached page scores and site metrics. '
                'Re-run with --confirm to proceed.'
            ))
            return

        propagator = build_scoring_services(using=options['database']).propagator
        site_id = options.get('site')
        if site_id is not None:
            if not Site.objects.using(options['database']).filter(pk=site_id).exists():
                raise CommandError(f'Site {site_id} does not exist.')
            result = propagator.update_all_pages_in_site(site_id, backfill_legacy=True)
        else:
            result = propagator.update_all_scores(backfill_legacy=True)

        self.stdout.write(f'Sites processed: {result.sites_processed} ({result.sites_failed} failed)')
        self.stdout.write(f'Pages processed: {result.pages_processed}')
        self.stdout.write(f'  scored from section ratings: {result.pages_scored}')
        self.stdout.write(f'  scored from legacy score:    {result.pages_from_legacy}')
        self.stdout.write(f'  without any score:           {result.pages_unrated}')
        self.stdout.write(f'  failed:                      {result.pages_failed}')

        if result.pages_failed or result.sites_failed:
            self.stdout.write(self.style.WARNING('Score population finished with errors; see the log.'))
        else:
            self.stdout.write(self.style.SUCCESS('Score population complete.'))
