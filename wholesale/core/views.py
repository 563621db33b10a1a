from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from .models import AuditLog
from .serializers import UserSerializer, StaffUserCreateSerializer, AuditLogSerializer
from .utils import is_admin_user, get_customer_profile, create_audit_log

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['role'] = self.user.role
        profile = get_customer_profile(self.user)
        data['customer_id'] = profile.id if profile else None
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that answers 401 instead of 500 for deleted users"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with role and customer profile"""
    user = request.user
    user_data = UserSerializer(user).data
    profile = get_customer_profile(user)
    user_data['customer_id'] = profile.id if profile else None
    return Response(user_data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List logins or create an admin or accountant login (admin only)"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only administrators can manage staff logins'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        users = User.objects.order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        return Response(UserSerializer(users, many=True).data)

    serializer = StaffUserCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = serializer.save()
    create_audit_log(
        request=request,
        action='create',
        model_name='User',
        object_id=str(user.id),
        object_name=user.username,
        changes={'role': user.role},
    )
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs (Admin only)"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can access audit logs'}, status=status.HTTP_403_FORBIDDEN)
    queryset = AuditLog.objects.select_related('user').all()
    action = request.query_params.get('action', None)
    model_name = request.query_params.get('model_name', None)
    object_reference = request.query_params.get('object_reference', None)
    if action:
        queryset = queryset.filter(action=action)
    if model_name:
        queryset = queryset.filter(model_name=model_name)
    if object_reference:
        queryset = queryset.filter(object_reference=object_reference)
    serializer = AuditLogSerializer(queryset[:500], many=True)
    return Response(serializer.data)
