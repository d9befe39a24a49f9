import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ContactSubmission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200, validators=[django.core.validators.MinLengthValidator(2)])),
                ('email', models.EmailField(max_length=254)),
                ('message', models.TextField(validators=[django.core.validators.MinLengthValidator(10)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='RecurringSlot',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('day_of_week', models.PositiveSmallIntegerField(choices=[(0, 'Sunday'), (1, 'Monday'), (2, 'Tuesday'), (3, 'Wednesday'), (4, 'Thursday'), (5, 'Friday'), (6, 'Saturday')], help_text='Day of week for the class (0=Sunday, 6=Saturday)')),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('description', models.CharField(blank=True, default='', help_text='Course type, e.g. Open Ring or Boxe Femme', max_length=200)),
                ('max_bookings', models.PositiveIntegerField(default=1, help_text='Maximum number of active bookings per generated slot', validators=[django.core.validators.MinValueValidator(1)])),
                ('valid_from', models.DateField(help_text='First date this pattern may generate slots')),
                ('valid_until', models.DateField(blank=True, help_text='Last date this pattern may generate slots (null = open-ended)', null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['day_of_week', 'start_time'],
                'indexes': [
                    models.Index(fields=['is_active', 'day_of_week'], name='recurring_active_day_idx'),
                    models.Index(fields=['valid_from', 'valid_until'], name='recurring_validity_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AvailabilitySlot',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('description', models.CharField(blank=True, default='', max_length=200)),
                ('max_bookings', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recurring_slot', models.ForeignKey(blank=True, help_text='Pattern this slot was generated from (null for one-off slots)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='availability_slots', to='scheduling.recurringslot')),
            ],
            options={
                'ordering': ['date', 'start_time'],
                'indexes': [
                    models.Index(fields=['date', 'is_active'], name='avail_slot_date_active_idx'),
                    models.Index(fields=['recurring_slot', 'date'], name='avail_slot_pattern_date_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('recurring_slot__isnull', False)), fields=('date', 'start_time', 'end_time', 'recurring_slot'), name='unique_generated_slot'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('customer_name', models.CharField(max_length=200, validators=[django.core.validators.MinLengthValidator(2)])),
                ('customer_email', models.EmailField(max_length=254)),
                ('customer_phone', models.CharField(blank=True, default='', max_length=50)),
                ('notes', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('slot', models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name='bookings', to='scheduling.availabilityslot')),
            ],
            options={
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['slot', 'status'], name='booking_slot_status_idx'),
                ],
            },
        ),
    ]
