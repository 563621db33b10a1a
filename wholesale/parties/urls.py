from django.urls import path
from .views import customer_list_create, customer_detail, customer_credit_limit, customer_balance

urlpatterns = [
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/credit-limit/', customer_credit_limit, name='customer-credit-limit'),
    path('customers/<int:pk>/balance/', customer_balance, name='customer-balance'),
]
