from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model carrying the application role"""
    ROLE_CUSTOMER = 'customer'
    ROLE_ADMIN = 'admin'
    ROLE_ACCOUNTANT = 'accountant'
    ROLE_CHOICES = [
        (ROLE_CUSTOMER, 'Customer'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_ACCOUNTANT, 'Accountant'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_superuser

    @property
    def is_accountant(self):
        return self.role == self.ROLE_ACCOUNTANT


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('customer_create', 'Customer Created'),
        ('credit_limit_change', 'Credit Limit Changed'),
        ('order_create', 'Order Placed'),
        ('order_update', 'Order Updated'),
        ('order_status', 'Order Status Changed'),
        ('bill_create', 'Bill Created'),
        ('payment_add', 'Payment Added'),
        ('payment_request_create', 'Payment Request Submitted'),
        ('payment_request_approve', 'Payment Request Approved'),
        ('payment_request_reject', 'Payment Request Rejected'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., customer name, bill number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., bill number, order number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_8a3b1e_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5c2d9f_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_0e7a4c_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__9d1f6b_idx'),
        ]
