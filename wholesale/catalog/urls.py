from django.urls import path
from .views import (
    product_list_create, product_detail,
    coupon_list_create, coupon_detail, coupon_validate,
)

urlpatterns = [
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('coupons/', coupon_list_create, name='coupon-list-create'),
    path('coupons/validate/', coupon_validate, name='coupon-validate'),
    path('coupons/<int:pk>/', coupon_detail, name='coupon-detail'),
]
