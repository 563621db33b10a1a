from django.db import models
from decimal import Decimal


class Product(models.Model):
    """Fabric sold by the meter"""
    CATEGORY_CHOICES = [
        ('pocketing', 'Pocketing'),
        ('lining', 'Lining'),
        ('shirting', 'Shirting'),
        ('suiting', 'Suiting'),
        ('other', 'Other'),
    ]

    STOCK_STATUS_CHOICES = [
        ('in_stock', 'In Stock'),
        ('low_stock', 'Low Stock'),
        ('out_of_stock', 'Out of Stock'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    category = models.CharField(max_length=50, choices=CATEGORY_CHOICES, default='pocketing')
    description = models.TextField(blank=True)
    price_per_meter = models.DecimalField(max_digits=10, decimal_places=2)
    min_order_quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    stock_status = models.CharField(max_length=20, choices=STOCK_STATUS_CHOICES, default='in_stock')
    image_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['name']


class Coupon(models.Model):
    """Per-product discount codes"""
    DISCOUNT_TYPE_CHOICES = [
        ('fixed', 'Fixed amount per meter'),
        ('percentage', 'Percentage of price per meter'),
    ]

    code = models.CharField(max_length=50)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='coupons')
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default='fixed')
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.code} ({self.product.name})"

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def discount_per_meter(self, price_per_meter):
        """Discount taken off one meter, never more than the price itself"""
        if self.discount_type == 'percentage':
            discount = (price_per_meter * self.discount_value / Decimal('100')).quantize(Decimal('0.01'))
        else:
            discount = self.discount_value
        return min(discount, price_per_meter)

    class Meta:
        db_table = 'coupons'
        unique_together = [('code', 'product')]
