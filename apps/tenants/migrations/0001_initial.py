# Generated migration for businesses and their tenant-scoped tables

import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Business',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('name', models.CharField(help_text='Business name', max_length=255)),
                ('slug', models.CharField(help_text='URL-friendly identifier (lowercase letters, digits, hyphens)', max_length=100, unique=True, validators=[django.core.validators.RegexValidator(message='Slug may only contain lowercase letters, digits and hyphens.', regex='^[a-z0-9-]+$')])),
                ('email', models.EmailField(help_text='Business contact email', max_length=254)),
                ('phone', models.CharField(blank=True, help_text='Business contact phone', max_length=50)),
                ('industry', models.CharField(choices=[('salons_barbershops', 'Salons & Barbershops'), ('auto_mechanics', 'Auto Mechanics'), ('massage_therapy', 'Massage Therapy'), ('fitness_wellness', 'Fitness & Wellness'), ('other', 'Other')], help_text='Industry vertical', max_length=30)),
                ('status', models.CharField(choices=[('trial', 'Trial'), ('active', 'Active'), ('suspended', 'Suspended'), ('inactive', 'Inactive'), ('cancelled', 'Cancelled')], db_index=True, default='trial', help_text='Business lifecycle status', max_length=20)),
                ('subscription_tier', models.CharField(blank=True, choices=[('basic', 'Basic'), ('advanced', 'Advanced'), ('professional', 'Professional'), ('enterprise', 'Enterprise')], help_text='Subscription tier', max_length=20, null=True)),
                ('subscription_status', models.CharField(blank=True, choices=[('active', 'Active'), ('cancelled', 'Cancelled'), ('past_due', 'Past Due'), ('trialing', 'Trialing'), ('paused', 'Paused')], help_text='Subscription status as reported by billing', max_length=20, null=True)),
                ('trial_ends_at', models.DateTimeField(blank=True, help_text='End of the free trial', null=True)),
                ('timezone', models.CharField(default='Australia/Perth', help_text='Business timezone', max_length=50)),
                ('currency', models.CharField(default='AUD', help_text='ISO 4217 currency code', max_length=3)),
                ('settings', models.JSONField(blank=True, default=dict, help_text='Free-form business settings')),
            ],
            options={
                'db_table': 'businesses',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BusinessLocation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255)),
                ('address', models.TextField(blank=True)),
                ('is_primary', models.BooleanField(default=False)),
                ('business', models.ForeignKey(help_text='Business this location belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='locations', to='tenants.business')),
            ],
            options={
                'db_table': 'business_locations',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='BusinessModule',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('module', models.CharField(help_text="Module identifier (e.g., 'bookings', 'inventory')", max_length=50)),
                ('is_enabled', models.BooleanField(default=True)),
                ('config', models.JSONField(blank=True, default=dict)),
                ('business', models.ForeignKey(help_text='Business this module is enabled for', on_delete=django.db.models.deletion.CASCADE, related_name='modules', to='tenants.business')),
            ],
            options={
                'db_table': 'business_modules',
                'ordering': ['module'],
                'unique_together': {('business', 'module')},
            },
        ),
        migrations.AddIndex(
            model_name='business',
            index=models.Index(fields=['status', 'created_at'], name='businesses_status_created_idx'),
        ),
        migrations.AddIndex(
            model_name='business',
            index=models.Index(fields=['industry'], name='businesses_industry_idx'),
        ),
    ]
