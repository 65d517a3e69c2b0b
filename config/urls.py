"""
URL configuration for the Oblivion platform API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.rbac.urls')),  # Access context, memberships, audit logs
    path('v1/', include('apps.tenants.urls')),  # Businesses and locations
]
