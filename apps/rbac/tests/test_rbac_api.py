"""
API tests for access context, membership and audit endpoints.
"""
import uuid

import pytest
from django.urls import reverse

from apps.rbac.membership_view import CachedMembershipView
from apps.rbac.models import AuditLog, Membership
from apps.rbac.services import MembershipService


def _membership(user, business):
    return Membership.objects.get(user=user, business=business)


@pytest.mark.django_db
class TestMiddleware:

    def test_request_id_is_echoed(self, api_client):
        response = api_client.get(reverse('rbac:access-me'), HTTP_X_REQUEST_ID='req-123')
        assert response['X-Request-ID'] == 'req-123'

    def test_request_id_generated(self, api_client):
        response = api_client.get(reverse('rbac:access-me'))
        assert uuid.UUID(response['X-Request-ID'])

    def test_invalid_token_runs_as_nil_identity(self, api_client):
        response = api_client.get(reverse('rbac:access-me'), HTTP_AUTHORIZATION='Bearer not-a-token')

        assert response.status_code == 200
        assert response.data['user_id'] == '00000000-0000-0000-0000-000000000000'
        assert response.data['authenticated'] is False

    def test_token_for_inactive_user_is_anonymous(self, api_client, owner, auth_header):
        headers = auth_header(owner)
        owner.is_active = False
        owner.save(update_fields=['is_active'])

        response = api_client.get(reverse('rbac:membership-list'), **headers)

        assert response.status_code == 401


@pytest.mark.django_db
class TestAccessContextEndpoint:

    def test_owner_context(self, api_client, owner, business, auth_header):
        CachedMembershipView.refresh()

        response = api_client.get(reverse('rbac:access-me'), **auth_header(owner))

        assert response.status_code == 200
        assert response.data['user_id'] == str(owner.id)
        assert response.data['authenticated'] is True
        assert response.data['current_business_id'] == str(business.id)
        assert response.data['current_role'] == 'owner'
        assert response.data['view_generation'] == 1
        assert response.data['memberships'] == [
            {'business_id': str(business.id), 'role': 'owner', 'all_roles': ['owner']}
        ]

    def test_memberships_lag_until_refresh(self, api_client, staff, business, auth_header):
        response = api_client.get(reverse('rbac:access-me'), **auth_header(staff))

        # Cache not built yet, live role is still resolved
        assert response.data['memberships'] == []
        assert response.data['current_role'] == 'staff'

    def test_business_header_selects_current_business(self, api_client, make_user, make_business,
                                                      make_membership, auth_header):
        user = make_user()
        first, second = make_business(), make_business()
        make_membership(user, first, role='owner')
        make_membership(user, second, role='staff')

        response = api_client.get(reverse('rbac:access-me'), **auth_header(user, second))

        assert response.data['current_business_id'] == str(second.id)
        assert response.data['current_role'] == 'staff'

    def test_anonymous_context(self, api_client):
        response = api_client.get(reverse('rbac:access-me'))

        assert response.data['current_business_id'] is None
        assert response.data['current_role'] is None
        assert response.data['memberships'] == []


@pytest.mark.django_db
class TestMembershipList:

    def test_lists_members_of_own_business(self, api_client, owner, staff, outsider, auth_header):
        response = api_client.get(reverse('rbac:membership-list'), **auth_header(staff))

        assert response.status_code == 200
        emails = {row['user_email'] for row in response.data['results']}
        assert emails == {owner.email, staff.email}

    def test_business_filter_outside_memberships_is_empty(self, api_client, staff, other_business, auth_header):
        response = api_client.get(
            reverse('rbac:membership-list'), {'business_id': str(other_business.id)}, **auth_header(staff)
        )
        assert response.data['results'] == []

    def test_malformed_business_filter_is_empty(self, api_client, staff, auth_header):
        response = api_client.get(reverse('rbac:membership-list'), {'business_id': 'nope'}, **auth_header(staff))
        assert response.data['results'] == []

    def test_anonymous_gets_401(self, api_client):
        response = api_client.get(reverse('rbac:membership-list'))
        assert response.status_code == 401


@pytest.mark.django_db
class TestMembershipLifecycleEndpoints:

    def test_invite_and_accept(self, api_client, owner, business, make_user, auth_header):
        invitee = make_user('new@example.com')

        response = api_client.post(
            reverse('rbac:membership-invite', args=[business.id]),
            {'email': 'new@example.com', 'role': 'manager'},
            format='json',
            **auth_header(owner),
        )
        assert response.status_code == 201
        assert response.data['status'] == 'pending'
        assert response.data['role'] == 'manager'

        response = api_client.post(
            reverse('rbac:membership-accept', args=[response.data['id']]), **auth_header(invitee)
        )
        assert response.status_code == 200
        assert response.data['status'] == 'active'

    def test_invite_unknown_email(self, api_client, owner, business, auth_header):
        response = api_client.post(
            reverse('rbac:membership-invite', args=[business.id]),
            {'email': 'ghost@example.com'},
            format='json',
            **auth_header(owner),
        )
        assert response.status_code == 400
        assert 'email' in response.data

    def test_invite_into_foreign_business_is_404(self, api_client, owner, other_business, make_user, auth_header):
        make_user('new@example.com')

        response = api_client.post(
            reverse('rbac:membership-invite', args=[other_business.id]),
            {'email': 'new@example.com'},
            format='json',
            **auth_header(owner),
        )

        assert response.status_code == 404
        assert response.data['error'] == 'permission denied'

    def test_duplicate_invite_is_409(self, api_client, owner, staff, business, auth_header):
        response = api_client.post(
            reverse('rbac:membership-invite', args=[business.id]),
            {'email': staff.email},
            format='json',
            **auth_header(owner),
        )
        assert response.status_code == 409
        assert response.data['code'] == 'INVALID_MEMBERSHIP_TRANSITION'

    def test_stranger_cannot_see_invitation(self, api_client, owner, business, outsider, make_user,
                                            auth_header, context_for):
        membership = MembershipService.invite(context_for(owner), business.id, make_user())

        response = api_client.post(reverse('rbac:membership-accept', args=[membership.id]), **auth_header(outsider))

        assert response.status_code == 404

    def test_deactivate(self, api_client, owner, staff, business, auth_header):
        membership = _membership(staff, business)

        response = api_client.post(reverse('rbac:membership-deactivate', args=[membership.id]), **auth_header(owner))

        assert response.status_code == 200
        assert response.data['status'] == 'inactive'

    def test_deactivate_by_staff_is_404(self, api_client, owner, staff, business, auth_header):
        membership = _membership(owner, business)

        response = api_client.post(reverse('rbac:membership-deactivate', args=[membership.id]), **auth_header(staff))

        assert response.status_code == 404
        assert _membership(owner, business).status == 'active'

    def test_deactivate_foreign_membership_is_404(self, api_client, owner, outsider, other_business, auth_header):
        membership = _membership(outsider, other_business)

        response = api_client.post(reverse('rbac:membership-deactivate', args=[membership.id]), **auth_header(owner))

        assert response.status_code == 404

    def test_change_role(self, api_client, admin_user, staff, business, auth_header):
        membership = _membership(staff, business)

        response = api_client.put(
            reverse('rbac:membership-role', args=[membership.id]),
            {'role': 'manager'},
            format='json',
            **auth_header(admin_user),
        )

        assert response.status_code == 200
        assert response.data['role'] == 'manager'

    def test_change_role_rejects_unknown_role(self, api_client, owner, staff, business, auth_header):
        response = api_client.put(
            reverse('rbac:membership-role', args=[_membership(staff, business).id]),
            {'role': 'superuser'},
            format='json',
            **auth_header(owner),
        )
        assert response.status_code == 400


@pytest.mark.django_db
class TestAuditLogEndpoint:

    def _revoke(self, api_client, owner, staff, business, auth_header):
        membership = _membership(staff, business)
        api_client.post(reverse('rbac:membership-deactivate', args=[membership.id]), **auth_header(owner))

    def test_admin_sees_business_audit_trail(self, api_client, owner, admin_user, staff, business, auth_header):
        self._revoke(api_client, owner, staff, business, auth_header)

        response = api_client.get(reverse('rbac:audit-log-list'), **auth_header(admin_user))

        assert response.status_code == 200
        entry, = response.data['results']
        assert entry['table_name'] == 'business_users'
        assert entry['action'] == 'UPDATE'
        assert entry['user_id'] == str(owner.id)
        assert entry['request_id']

    def test_request_id_recorded(self, api_client, owner, staff, business, auth_header):
        membership = _membership(staff, business)
        api_client.post(
            reverse('rbac:membership-deactivate', args=[membership.id]),
            HTTP_X_REQUEST_ID='trace-42',
            **auth_header(owner),
        )
        assert AuditLog.objects.by_request('trace-42').count() == 1

    def test_table_filter(self, api_client, owner, staff, business, auth_header):
        self._revoke(api_client, owner, staff, business, auth_header)

        response = api_client.get(reverse('rbac:audit-log-list'), {'table_name': 'businesses'}, **auth_header(owner))

        assert response.data['results'] == []

    def test_staff_is_forbidden(self, api_client, staff, auth_header):
        response = api_client.get(reverse('rbac:audit-log-list'), **auth_header(staff))
        assert response.status_code == 403

    def test_other_business_admin_sees_nothing(self, api_client, owner, staff, outsider, business, auth_header):
        self._revoke(api_client, owner, staff, business, auth_header)

        response = api_client.get(reverse('rbac:audit-log-list'), **auth_header(outsider))

        assert response.status_code == 200
        assert response.data['results'] == []
