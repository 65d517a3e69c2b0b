"""
RBAC REST API views.

Implements endpoints for:
- The caller's permission context
- Membership lifecycle (invite, accept, deactivate, role change)
- Audit log viewing
"""
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.rbac.authorization import filter_queryset
from apps.rbac.context import parse_uuid
from apps.rbac.membership_view import CachedMembershipView
from apps.rbac.models import AuditLog, Membership
from apps.rbac.permissions import HasResourceAccess, ResourcePolicyFilterBackend, get_access_context
from apps.rbac.resolvers import MembershipResolver
from apps.rbac.serializers import (
    AccessContextSerializer, AuditLogSerializer, ChangeRoleSerializer,
    InviteMemberSerializer, MembershipSerializer,
)
from apps.rbac.services import MembershipService


def _filter_business(queryset, request):
    """Apply the optional ?business_id= filter. A malformed id matches nothing."""
    raw = request.query_params.get('business_id')
    if not raw:
        return queryset
    business_id = parse_uuid(raw)
    if business_id is None:
        return queryset.none()
    return queryset.filter(business_id=business_id)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class AccessContextView(APIView):
    """
    GET /v1/access/me

    The caller's permission context. Membership rows come from the cached
    projection and may lag behind revocations until the next refresh;
    ``current_business_id`` and ``current_role`` are resolved live.
    """

    @extend_schema(
        tags=['Access'],
        summary='Current permission context',
        parameters=[
            OpenApiParameter('X-Business-ID', OpenApiTypes.UUID, OpenApiParameter.HEADER, required=False,
                             description='Business to resolve the current role in'),
        ],
        responses={200: AccessContextSerializer},
    )
    def get(self, request):
        context = get_access_context(request)
        business_id = MembershipResolver.current_business_id(context)
        view_state = CachedMembershipView.state()

        serializer = AccessContextSerializer({
            'user_id': context.user_id,
            'authenticated': context.is_authenticated,
            'is_service': context.is_service,
            'current_business_id': business_id,
            'current_role': MembershipResolver.role_in_business(context, business_id) if business_id else None,
            'memberships': CachedMembershipView.rows_for(context.user_id),
            'view_generation': view_state['generation'],
            'view_refreshed_at': view_state['refreshed_at'],
        })
        return Response(serializer.data)


class MembershipListView(APIView):
    """
    GET /v1/memberships

    Memberships visible to the caller (those of businesses they belong to).
    """
    permission_classes = [HasResourceAccess]
    queryset = Membership.objects.all()

    @extend_schema(tags=['Memberships'], summary='List memberships', responses={200: MembershipSerializer(many=True)})
    def get(self, request):
        queryset = ResourcePolicyFilterBackend().filter_queryset(
            request, self.queryset.select_related('user'), self
        )
        queryset = _filter_business(queryset, request)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset.order_by('created_at'), request, view=self)
        return paginator.get_paginated_response(MembershipSerializer(page, many=True).data)


class MembershipInviteView(APIView):
    """
    POST /v1/businesses/{business_id}/memberships

    Invite an existing user. The invitation starts out pending.
    """

    @extend_schema(
        tags=['Memberships'],
        summary='Invite member',
        request=InviteMemberSerializer,
        responses={201: MembershipSerializer},
    )
    def post(self, request, business_id):
        serializer = InviteMemberSerializer(data=request.data, context={})
        serializer.is_valid(raise_exception=True)

        membership = MembershipService.invite(
            get_access_context(request),
            business_id,
            serializer.context['invitee'],
            role=serializer.validated_data['role'],
        )
        return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)


def _visible_membership(request, membership_id, include_own=False):
    """Membership the caller may see, else NotFound."""
    context = get_access_context(request)
    queryset = filter_queryset(context, Membership.objects.all())
    membership = queryset.filter(pk=membership_id).first()
    if membership is None and include_own:
        membership = Membership.objects.filter(pk=membership_id, user_id=context.user_id).first()
    if membership is None:
        raise NotFound()
    return membership


class MembershipAcceptView(APIView):
    """POST /v1/memberships/{membership_id}/accept"""

    @extend_schema(tags=['Memberships'], summary='Accept invitation', request=None, responses={200: MembershipSerializer})
    def post(self, request, membership_id):
        membership = _visible_membership(request, membership_id, include_own=True)
        membership = MembershipService.accept(get_access_context(request), membership)
        return Response(MembershipSerializer(membership).data)


class MembershipDeactivateView(APIView):
    """POST /v1/memberships/{membership_id}/deactivate"""

    @extend_schema(tags=['Memberships'], summary='Deactivate membership', request=None, responses={200: MembershipSerializer})
    def post(self, request, membership_id):
        membership = _visible_membership(request, membership_id)
        membership = MembershipService.deactivate(get_access_context(request), membership)
        return Response(MembershipSerializer(membership).data)


class MembershipRoleView(APIView):
    """PUT /v1/memberships/{membership_id}/role"""

    @extend_schema(tags=['Memberships'], summary='Change member role', request=ChangeRoleSerializer,
                   responses={200: MembershipSerializer})
    def put(self, request, membership_id):
        serializer = ChangeRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = _visible_membership(request, membership_id)
        membership = MembershipService.change_role(
            get_access_context(request), membership, serializer.validated_data['role']
        )
        return Response(MembershipSerializer(membership).data)


class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    Audit entries of businesses where the caller is owner or admin.
    """
    permission_classes = [HasResourceAccess]
    queryset = AuditLog.objects.all()

    @extend_schema(
        tags=['Audit'],
        summary='List audit logs',
        parameters=[
            OpenApiParameter('business_id', OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter('table_name', OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: AuditLogSerializer(many=True)},
    )
    def get(self, request):
        queryset = ResourcePolicyFilterBackend().filter_queryset(request, self.queryset, self)

        queryset = _filter_business(queryset, request)
        table_name = request.query_params.get('table_name')
        if table_name:
            queryset = queryset.filter(table_name=table_name)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset.order_by('-created_at'), request, view=self)
        return paginator.get_paginated_response(AuditLogSerializer(page, many=True).data)
