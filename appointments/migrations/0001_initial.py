import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('patients', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DaySchedule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('is_enabled', models.BooleanField(default=True)),
                ('time_ranges', models.JSONField(blank=True, default=list, help_text='List of {"start": "HH:MM", "end": "HH:MM"}')),
                ('notes', models.TextField(blank=True, help_text='Optional notes for this date')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('staff', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='day_schedules', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Day Schedule',
                'verbose_name_plural': 'Day Schedules',
                'ordering': ['date', 'staff'],
                'indexes': [models.Index(fields=['date'], name='day_schedule_date_idx')],
                'constraints': [models.UniqueConstraint(fields=('staff', 'date'), name='unique_staff_day_schedule')],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(help_text='Date of appointment')),
                ('time', models.TimeField(help_text='Start time of appointment')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('ongoing', 'Ongoing'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('amount', models.DecimalField(blank=True, decimal_places=2, help_text='Session cost override; the standard rate is used when empty', max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to='patients.patient')),
                ('staff', models.ForeignKey(blank=True, help_text='Clinician the appointment is booked with', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='appointments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-date', '-time'],
                'indexes': [
                    models.Index(fields=['status'], name='appt_status_idx'),
                    models.Index(fields=['patient'], name='appt_patient_idx'),
                    models.Index(fields=['staff', 'date'], name='appt_staff_date_idx'),
                    models.Index(fields=['date', 'time'], name='appt_date_time_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BillingRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('billing_date', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('appointment', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='billing_record', to='appointments.appointment')),
            ],
            options={
                'ordering': ['-billing_date', '-created_at'],
                'indexes': [models.Index(fields=['billing_date'], name='billing_record_date_idx')],
            },
        ),
    ]
