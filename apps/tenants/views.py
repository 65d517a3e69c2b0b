"""
Business and location API views.

Every read goes through the row policy filter and every write through the
authorized_* helpers, so a row the caller may not touch behaves exactly like
a row that does not exist.
"""
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema
import logging

from apps.rbac.authorization import (
    authorized_create, authorized_delete, authorized_update, filter_queryset,
)
from apps.rbac.permissions import HasResourceAccess, get_access_context
from apps.tenants.models import Business, BusinessLocation
from apps.tenants.serializers import (
    BusinessLocationSerializer, BusinessProvisionSerializer,
    BusinessSerializer, BusinessUpdateSerializer,
)
from apps.tenants.services import BusinessService

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _visible_business(request, business_id):
    context = get_access_context(request)
    business = filter_queryset(context, Business.objects.filter(pk=business_id)).first()
    if business is None:
        raise NotFound()
    return business


class BusinessListView(APIView):
    """
    GET /v1/businesses - businesses the caller belongs to
    POST /v1/businesses - provision a business owned by the caller
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=['Businesses'], summary='List businesses', responses={200: BusinessSerializer(many=True)})
    def get(self, request):
        queryset = filter_queryset(get_access_context(request), Business.objects.all())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset.order_by('name'), request, view=self)
        return paginator.get_paginated_response(BusinessSerializer(page, many=True).data)

    @extend_schema(
        tags=['Businesses'],
        summary='Provision business',
        request=BusinessProvisionSerializer,
        responses={201: BusinessSerializer},
    )
    def post(self, request):
        serializer = BusinessProvisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        business = BusinessService.provision_business(get_access_context(request), **serializer.validated_data)
        return Response(BusinessSerializer(business).data, status=status.HTTP_201_CREATED)


class BusinessDetailView(APIView):
    """
    GET /v1/businesses/{business_id}
    PATCH /v1/businesses/{business_id} - owners only
    DELETE /v1/businesses/{business_id} - soft delete, owners only
    """

    @extend_schema(tags=['Businesses'], summary='Get business', responses={200: BusinessSerializer})
    def get(self, request, business_id):
        return Response(BusinessSerializer(_visible_business(request, business_id)).data)

    @extend_schema(tags=['Businesses'], summary='Update business', request=BusinessUpdateSerializer,
                   responses={200: BusinessSerializer})
    def patch(self, request, business_id):
        serializer = BusinessUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        updated = authorized_update(
            get_access_context(request),
            Business.objects.filter(pk=business_id),
            **serializer.validated_data
        )
        if not updated:
            raise NotFound()
        return Response(BusinessSerializer(Business.objects.get(pk=business_id)).data)

    @extend_schema(tags=['Businesses'], summary='Delete business', responses={204: None})
    def delete(self, request, business_id):
        business = _visible_business(request, business_id)
        BusinessService.soft_delete(get_access_context(request), business)
        return Response(status=status.HTTP_204_NO_CONTENT)


class BusinessLocationListCreateView(APIView):
    """
    GET /v1/businesses/{business_id}/locations
    POST /v1/businesses/{business_id}/locations
    """

    @extend_schema(tags=['Locations'], summary='List locations', responses={200: BusinessLocationSerializer(many=True)})
    def get(self, request, business_id):
        queryset = filter_queryset(
            get_access_context(request),
            BusinessLocation.objects.filter(business_id=business_id)
        )

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(BusinessLocationSerializer(page, many=True).data)

    @extend_schema(tags=['Locations'], summary='Create location', request=BusinessLocationSerializer,
                   responses={201: BusinessLocationSerializer})
    def post(self, request, business_id):
        serializer = BusinessLocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        location = authorized_create(
            get_access_context(request),
            BusinessLocation,
            business_id=business_id,
            **serializer.validated_data
        )
        return Response(BusinessLocationSerializer(location).data, status=status.HTTP_201_CREATED)


class BusinessLocationDetailView(APIView):
    """
    GET /v1/locations/{location_id}
    PATCH /v1/locations/{location_id}
    DELETE /v1/locations/{location_id}
    """
    permission_classes = [HasResourceAccess]
    queryset = BusinessLocation.objects.all()

    def get_object(self, location_id):
        location = self.queryset.filter(pk=location_id).first()
        if location is None:
            raise NotFound()
        self.check_object_permissions(self.request, location)
        return location

    @extend_schema(tags=['Locations'], summary='Get location', responses={200: BusinessLocationSerializer})
    def get(self, request, location_id):
        return Response(BusinessLocationSerializer(self.get_object(location_id)).data)

    @extend_schema(tags=['Locations'], summary='Update location', request=BusinessLocationSerializer,
                   responses={200: BusinessLocationSerializer})
    def patch(self, request, location_id):
        serializer = BusinessLocationSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        updated = authorized_update(
            get_access_context(request),
            self.queryset.filter(pk=location_id),
            **serializer.validated_data
        )
        if not updated:
            raise NotFound()
        return Response(BusinessLocationSerializer(self.queryset.get(pk=location_id)).data)

    @extend_schema(tags=['Locations'], summary='Delete location', responses={204: None})
    def delete(self, request, location_id):
        deleted = authorized_delete(get_access_context(request), self.queryset.filter(pk=location_id))
        if not deleted:
            raise NotFound()
        return Response(status=status.HTTP_204_NO_CONTENT)
