"""
URL configuration for the wholesale back office.

Each app mounts its own urlpatterns under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Wholesale Fabrics Admin Panel"
admin.site.site_title = "Wholesale Fabrics Admin Portal"
admin.site.index_title = "Welcome to the Wholesale Fabrics Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('wholesale.core.urls')),
    path('api/v1/', include('wholesale.catalog.urls')),
    path('api/v1/', include('wholesale.parties.urls')),
    path('api/v1/', include('wholesale.orders.urls')),
    path('api/v1/', include('wholesale.billing.urls')),
    path('api/v1/', include('wholesale.reports.urls')),
]
