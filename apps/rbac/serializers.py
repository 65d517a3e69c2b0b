"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Memberships and invitations
- The caller's permission context
- Audit logs
"""
from rest_framework import serializers
from apps.rbac.models import ActiveUserBusiness, AuditLog, Membership, User
from apps.rbac.roles import Role


class MembershipSerializer(serializers.ModelSerializer):
    """Membership row as exposed to members of the same business."""

    business_id = serializers.UUIDField(read_only=True)
    user_id = serializers.UUIDField(read_only=True)
    invited_by_id = serializers.UUIDField(read_only=True, allow_null=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Membership
        fields = [
            'id', 'business_id', 'user_id', 'user_email', 'role', 'status',
            'invited_by_id', 'invited_at', 'joined_at', 'created_at',
        ]
        read_only_fields = fields


class InviteMemberSerializer(serializers.Serializer):
    """Input for inviting an existing user to a business."""

    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=Role.choices, default=Role.STAFF)

    def validate_email(self, value):
        user = User.objects.by_email(value)
        if user is None or not user.is_active:
            raise serializers.ValidationError("No active user with this email.")
        self.context['invitee'] = user
        return user.email


class ChangeRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)


class CachedMembershipSerializer(serializers.ModelSerializer):
    """Row of the cached membership projection (display only)."""

    class Meta:
        model = ActiveUserBusiness
        fields = ['business_id', 'role', 'all_roles']
        read_only_fields = fields


class AccessContextSerializer(serializers.Serializer):
    """The caller's permission context."""

    user_id = serializers.UUIDField()
    authenticated = serializers.BooleanField()
    is_service = serializers.BooleanField()
    current_business_id = serializers.UUIDField(allow_null=True)
    current_role = serializers.CharField(allow_null=True)
    memberships = CachedMembershipSerializer(many=True)
    view_generation = serializers.IntegerField()
    view_refreshed_at = serializers.DateTimeField(allow_null=True)


class AuditLogSerializer(serializers.ModelSerializer):

    class Meta:
        model = AuditLog
        fields = [
            'id', 'table_name', 'record_id', 'action', 'event',
            'user_id', 'business_id', 'old_data', 'new_data', 'changed_fields',
            'ip_address', 'user_agent', 'request_id', 'created_at',
        ]
        read_only_fields = fields
