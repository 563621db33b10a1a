import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from .models import Product, Coupon
from .filters import ProductFilter
from .serializers import ProductSerializer, CouponSerializer, CouponValidateSerializer
from wholesale.core.utils import is_admin_user, is_staff_member, create_audit_log, paginated_response_data

logger = logging.getLogger(__name__)

ADMIN_ONLY_ERROR = 'Only administrators can manage the catalog'


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List products or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.all()
        # Customers only browse what is on sale
        if not is_staff_member(request.user):
            queryset = queryset.filter(is_active=True)

        filterset = ProductFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs.order_by('name', 'id')
        return Response(paginated_response_data(request, queryset, ProductSerializer))

    if not is_admin_user(request.user):
        return Response({'error': ADMIN_ONLY_ERROR}, status=status.HTTP_403_FORBIDDEN)

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        product = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            changes={'price_per_meter': str(product.price_per_meter), 'category': product.category},
        )
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or deactivate a product"""
    if is_staff_member(request.user):
        product = get_object_or_404(Product, pk=pk)
    else:
        product = get_object_or_404(Product, pk=pk, is_active=True)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    if not is_admin_user(request.user):
        return Response({'error': ADMIN_ONLY_ERROR}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        # Products referenced by orders are kept: deleting only takes them off sale
        product.is_active = False
        product.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Product {product.id} ({product.name}) deactivated by {request.user.username}")
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_price = product.price_per_meter
    serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        product = serializer.save()
        if product.price_per_meter != old_price:
            create_audit_log(
                request=request,
                action='update',
                model_name='Product',
                object_id=str(product.id),
                object_name=product.name,
                changes={'price_per_meter': {'old': str(old_price), 'new': str(product.price_per_meter)}},
            )
        return Response(ProductSerializer(product).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Coupon views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def coupon_list_create(request):
    """List or create coupons (admin only)"""
    if not is_admin_user(request.user):
        return Response({'error': ADMIN_ONLY_ERROR}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        coupons = Coupon.objects.select_related('product').order_by('-created_at')
        product_id = request.query_params.get('product')
        if product_id:
            coupons = coupons.filter(product_id=product_id)
        return Response(CouponSerializer(coupons, many=True).data)

    serializer = CouponSerializer(data=request.data)
    if serializer.is_valid():
        coupon = serializer.save()
        return Response(CouponSerializer(coupon).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def coupon_detail(request, pk):
    if not is_admin_user(request.user):
        return Response({'error': ADMIN_ONLY_ERROR}, status=status.HTTP_403_FORBIDDEN)

    coupon = get_object_or_404(Coupon.objects.select_related('product'), pk=pk)

    if request.method == 'GET':
        return Response(CouponSerializer(coupon).data)
    if request.method == 'DELETE':
        coupon.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CouponSerializer(coupon, data=request.data, partial=True)
    if serializer.is_valid():
        coupon = serializer.save()
        return Response(CouponSerializer(coupon).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def find_active_coupon(code, product):
    """Active coupon for a product by case-insensitive code, or None"""
    if not code:
        return None
    return Coupon.objects.filter(
        code=code.strip().upper(), product=product, is_active=True
    ).first()


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def coupon_validate(request):
    """Check a coupon code against a product and return the discount per meter"""
    serializer = CouponValidateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    product = serializer.validated_data['product']
    coupon = find_active_coupon(serializer.validated_data['code'], product)
    if coupon is None:
        return Response(
            {'valid': False, 'error': 'Invalid or inactive coupon code for this product'},
            status=status.HTTP_404_NOT_FOUND
        )

    discount = coupon.discount_per_meter(product.price_per_meter)
    return Response({
        'valid': True,
        'code': coupon.code,
        'discount_type': coupon.discount_type,
        'discount_value': str(coupon.discount_value),
        'discount_per_meter': str(discount),
        'price_per_meter': str(product.price_per_meter),
        'discounted_price_per_meter': str(product.price_per_meter - discount),
    })
