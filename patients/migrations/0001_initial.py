import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('contact_number', models.CharField(blank=True, max_length=20)),
                ('address', models.TextField(blank=True)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('classification', models.CharField(choices=[('VIP', 'VIP'), ('Paid', 'Paid'), ('Dyes', 'DYES'), ('Gethhma', 'Gethhma'), ('unclassified', 'Unclassified')], default='unclassified', max_length=20)),
                ('payment_terms', models.CharField(choices=[('with-concession', 'With concession'), ('without-concession', 'Without concession')], default='without-concession', help_text='Only used for Paid patients', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_clinician', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_patients', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['last_name', 'first_name'],
                'indexes': [
                    models.Index(fields=['classification'], name='patient_classification_idx'),
                    models.Index(fields=['last_name', 'first_name'], name='patient_name_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionAllowance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('free_sessions_total', models.PositiveIntegerField(default=0)),
                ('free_sessions_used', models.PositiveIntegerField(default=0)),
                ('pending_paid_sessions', models.PositiveIntegerField(default=0)),
                ('pending_charge_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('last_reset_on', models.DateField(blank=True, null=True)),
                ('next_reset_on', models.DateField(blank=True, null=True)),
                ('last_appointment_id', models.BigIntegerField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='session_allowance', to='patients.patient')),
            ],
            options={
                'verbose_name': 'Session Allowance',
                'verbose_name_plural': 'Session Allowances',
            },
        ),
    ]
