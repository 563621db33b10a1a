from django.urls import path
from .views import dashboard_summary, sales_analytics

urlpatterns = [
    path('reports/dashboard/', dashboard_summary, name='reports-dashboard'),
    path('reports/analytics/', sales_analytics, name='reports-analytics'),
]
