"""
URL configuration for the clinic CRM backend.

The admin site, the API routes of the ``crm`` app and the OpenAPI
documentation (``/swagger/`` and ``/redoc/``) are mounted here.
"""
from django.contrib import admin
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

api_info = openapi.Info(
    title="Clinic CRM API",
    default_version='v1',
    description="Leads, appointments, permissions and messaging for clinic, doctor and agent portals.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('crm.routers')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
