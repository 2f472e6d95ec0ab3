import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('orders', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentTransaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('method', models.CharField(choices=[('qris', 'QRIS'), ('bank_transfer', 'Bank transfer'), ('cash', 'Cash')], max_length=16)),
                ('base_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('unique_code', models.PositiveIntegerField(default=0)),
                ('amount', models.DecimalField(db_index=True, decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Pending verification'), ('completed', 'Completed'), ('expired', 'Expired'), ('failed', 'Failed')], db_index=True, default='pending', max_length=16)),
                ('bank_code', models.CharField(blank=True, default='', max_length=16)),
                ('bank_name', models.CharField(blank=True, default='', max_length=64)),
                ('account_number', models.CharField(blank=True, default='', max_length=32)),
                ('account_name', models.CharField(blank=True, default='', max_length=128)),
                ('qr_payload', models.TextField(blank=True, default='')),
                ('payment_reference', models.CharField(blank=True, default='', max_length=64)),
                ('expires_at', models.DateTimeField(db_index=True)),
                ('proof_image_url', models.CharField(blank=True, default='', max_length=512)),
                ('proof_file', models.CharField(blank=True, default='', max_length=255)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to='orders.order')),
            ],
            options={
                'ordering': ('-created_at',),
            },
        ),
    ]
