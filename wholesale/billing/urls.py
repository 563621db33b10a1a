from django.urls import path
from .views import (
    bill_list_create, bill_detail, bill_interest, bill_payments,
    payment_record, payment_preview, payment_list,
    payment_request_list_create, payment_request_review,
)

urlpatterns = [
    path('bills/', bill_list_create, name='bill-list-create'),
    path('bills/<int:pk>/', bill_detail, name='bill-detail'),
    path('bills/<int:pk>/interest/', bill_interest, name='bill-interest'),
    path('bills/<int:pk>/payments/', bill_payments, name='bill-payments'),
    path('payments/', payment_list, name='payment-list'),
    path('payments/record/', payment_record, name='payment-record'),
    path('payments/preview/', payment_preview, name='payment-preview'),
    path('payment-requests/', payment_request_list_create, name='payment-request-list-create'),
    path('payment-requests/<int:pk>/review/', payment_request_review, name='payment-request-review'),
]
