"""
Management command to load the studio's weekly timetable as recurring slots.

Patterns that already exist (same day, times and description) are left
untouched, so the command can be run more than once.
"""

from datetime import time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_date

from scheduling import services
from scheduling.models import RecurringSlot


# (day_of_week, start, end, max_bookings, description); 0=Sunday
WEEKLY_TIMETABLE = [
    (1, time(18, 45), time(20, 0), 8, 'Open Ring'),
    (1, time(20, 15), time(21, 15), 10, 'Boxe Femme'),
    (2, time(14, 0), time(17, 0), 12, 'Open Ring'),
    (2, time(18, 0), time(18, 45), 10, 'HIIT Mixte'),
    (2, time(19, 0), time(20, 0), 10, 'Boxe Femme'),
    (2, time(20, 15), time(21, 15), 12, 'Boxe Mixte'),
    (3, time(12, 15), time(13, 0), 10, 'HIIT Mixte'),
    (3, time(14, 0), time(17, 0), 12, 'Open Ring'),
    (3, time(18, 0), time(18, 45), 8, 'HIIT Femme'),
    (3, time(19, 0), time(20, 0), 12, 'Boxe Mixte'),
    (3, time(20, 15), time(21, 15), 10, 'Boxe Femme'),
    (4, time(9, 30), time(10, 30), 8, 'Boxe Mixte'),
    (4, time(12, 15), time(13, 0), 8, 'HIIT Femme'),
    (4, time(14, 0), time(17, 0), 12, 'Open Ring'),
    (4, time(18, 0), time(18, 45), 10, 'HIIT Mixte'),
    (4, time(18, 45), time(20, 0), 12, 'Open Ring'),
    (4, time(20, 15), time(21, 15), 10, 'Boxe Femme'),
    (5, time(9, 30), time(10, 30), 8, 'Boxe Femme'),
    (5, time(12, 15), time(13, 0), 10, 'HIIT Mixte'),
    (5, time(18, 0), time(18, 45), 8, 'HIIT Femme'),
    (6, time(10, 0), time(12, 0), 15, 'Open Ring'),
    (6, time(12, 15), time(13, 0), 8, 'HIIT Femme'),
    (6, time(13, 30), time(14, 30), 10, 'Boxe Mixte'),
    (0, time(11, 0), time(12, 0), 8, 'Boxe Mixte'),
    (0, time(12, 15), time(13, 0), 10, 'HIIT Mixte'),
    (0, time(13, 30), time(14, 30), 8, 'Boxe Femme'),
    (0, time(15, 0), time(17, 0), 15, 'Open Ring'),
]


class Command(BaseCommand):
    help = 'Create the weekly class timetable as recurring slots and generate slots'

    def add_arguments(self, parser):
        parser.add_argument(
            '--valid-from',
            help='First date of the timetable, YYYY-MM-DD (default: today)'
        )
        parser.add_argument(
            '--days',
            type=int,
            default=settings.SLOT_GENERATION_HORIZON_DAYS,
            help='Number of days ahead to generate slots'
        )

    def handle(self, *args, **options):
        valid_from = timezone.localdate()
        if options['valid_from']:
            valid_from = parse_date(options['valid_from'])
            if valid_from is None:
                raise CommandError(f"Invalid --valid-from date: {options['valid_from']}")

        created_patterns = 0
        for day, start, end, capacity, description in WEEKLY_TIMETABLE:
            exists = RecurringSlot.objects.filter(
                day_of_week=day,
                start_time=start,
                end_time=end,
                description=description,
            ).exists()
            if exists:
                continue

            services.create_recurring_slot(
                day_of_week=day,
                start_time=start,
                end_time=end,
                valid_from=valid_from,
                max_bookings=capacity,
                description=description,
                generate_slots=False,
            )
            created_patterns += 1

        slots_created = services.generate_slots_for_all_patterns(
            horizon_days=options['days']
        )

        self.stdout.write(
            self.style.SUCCESS(
                f'Created {created_patterns} recurring slot(s) and '
                f'{slots_created} availability slot(s)'
            )
        )
