"""
Business API URLs.
"""
from django.urls import path
from apps.tenants.views import (
    BusinessDetailView,
    BusinessListView,
    BusinessLocationDetailView,
    BusinessLocationListCreateView,
)

app_name = 'tenants'

urlpatterns = [
    path('businesses', BusinessListView.as_view(), name='business-list'),
    path('businesses/<uuid:business_id>', BusinessDetailView.as_view(), name='business-detail'),
    path('businesses/<uuid:business_id>/locations', BusinessLocationListCreateView.as_view(), name='location-list'),
    path('locations/<uuid:location_id>', BusinessLocationDetailView.as_view(), name='location-detail'),
]
