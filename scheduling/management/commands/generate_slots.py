"""
Management command to generate availability slots from recurring slots.

This command should be run periodically (e.g., daily via cron) so the
generation horizon keeps moving forward.
"""

from django.conf import settings
from django.core.management.base import BaseCommand
from scheduling import services


class Command(BaseCommand):
    help = 'Generate availability slots from active recurring slots'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=settings.SLOT_GENERATION_HORIZON_DAYS,
            help='Number of days ahead to generate slots '
                 f'(default: {settings.SLOT_GENERATION_HORIZON_DAYS})'
        )

    def handle(self, *args, **options):
        days_ahead = options['days']

        self.stdout.write(
            f'Generating availability slots for the next {days_ahead} days...'
        )

        total_created = services.generate_slots_for_all_patterns(
            horizon_days=days_ahead
        )

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully generated {total_created} new slot(s)'
            )
        )
