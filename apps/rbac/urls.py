"""
RBAC API URLs.

Provides endpoints for:
- The caller's permission context
- Membership lifecycle
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    AccessContextView,
    AuditLogListView,
    MembershipAcceptView,
    MembershipDeactivateView,
    MembershipInviteView,
    MembershipListView,
    MembershipRoleView,
)

app_name = 'rbac'

urlpatterns = [
    path('access/me', AccessContextView.as_view(), name='access-me'),

    # Membership endpoints
    path('memberships', MembershipListView.as_view(), name='membership-list'),
    path('businesses/<uuid:business_id>/memberships', MembershipInviteView.as_view(), name='membership-invite'),
    path('memberships/<uuid:membership_id>/accept', MembershipAcceptView.as_view(), name='membership-accept'),
    path('memberships/<uuid:membership_id>/deactivate', MembershipDeactivateView.as_view(), name='membership-deactivate'),
    path('memberships/<uuid:membership_id>/role', MembershipRoleView.as_view(), name='membership-role'),

    # Audit endpoints
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
