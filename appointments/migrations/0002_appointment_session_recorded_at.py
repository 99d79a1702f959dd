import django.core.validators
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('appointments', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='appointment',
            name='session_recorded_at',
            field=models.DateTimeField(blank=True, help_text='When the session allowance ledger counted this appointment', null=True),
        ),
        migrations.AlterField(
            model_name='appointment',
            name='amount',
            field=models.DecimalField(blank=True, decimal_places=2, help_text='Session cost; the standard rate is used when empty or zero', max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))]),
        ),
    ]
