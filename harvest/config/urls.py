"""
URL configuration for the harvest logistics backend.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Harvest Logistics Admin Panel"
admin.site.site_title = "Harvest Logistics Admin Portal"
admin.site.index_title = "Logistics center administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('harvest.core.urls')),
    path('api/v1/', include('harvest.centers.urls')),
    path('api/v1/', include('harvest.scheduling.urls')),
    path('api/v1/', include('harvest.catalog.urls')),
    path('api/v1/', include('harvest.orders.urls')),
    path('api/v1/', include('harvest.picking.urls')),
]
