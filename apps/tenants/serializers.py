"""
Serializers for business and location API endpoints.
"""
from rest_framework import serializers
from apps.tenants.models import Business, BusinessLocation


class BusinessSerializer(serializers.ModelSerializer):
    """Business as visible to its members."""

    class Meta:
        model = Business
        fields = [
            'id', 'name', 'slug', 'email', 'phone', 'industry', 'status',
            'subscription_tier', 'subscription_status', 'trial_ends_at',
            'timezone', 'currency', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'slug', 'status', 'subscription_tier', 'subscription_status',
            'trial_ends_at', 'created_at', 'updated_at',
        ]


class BusinessProvisionSerializer(serializers.Serializer):
    """Input for provisioning a new business owned by the caller."""

    name = serializers.CharField(max_length=255)
    slug = serializers.CharField(max_length=100, required=False)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    industry = serializers.ChoiceField(choices=Business.INDUSTRY_CHOICES)
    timezone = serializers.CharField(max_length=50, required=False)
    currency = serializers.CharField(max_length=3, required=False)


class BusinessUpdateSerializer(serializers.ModelSerializer):

    class Meta:
        model = Business
        fields = ['name', 'email', 'phone', 'timezone', 'currency']


class BusinessLocationSerializer(serializers.ModelSerializer):

    business_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = BusinessLocation
        fields = ['id', 'business_id', 'name', 'address', 'is_primary', 'created_at', 'updated_at']
        read_only_fields = ['id', 'business_id', 'created_at', 'updated_at']
