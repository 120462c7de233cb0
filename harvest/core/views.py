from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from django.shortcuts import get_object_or_404
from .models import User, AuditLog
from .permissions import IsManager
from .serializers import UserSerializer, AuditLogSerializer, HarvestTokenObtainPairSerializer


class HarvestTokenObtainPairView(TokenObtainPairView):
    serializer_class = HarvestTokenObtainPairSerializer


class HarvestTokenRefreshView(TokenRefreshView):
    pass


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with role and logistics center"""
    user_data = UserSerializer(request.user).data
    center = request.user.logistics_center
    if center:
        user_data['logistics_center_detail'] = {
            'id': center.id,
            'name': center.name,
            'code': center.code,
            'timezone': center.timezone,
        }
    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def user_list(request):
    """List users, optionally narrowed by role or logistics center"""
    queryset = User.objects.all().order_by('username')
    role = request.query_params.get('role')
    center = request.query_params.get('logistics_center')
    if role:
        queryset = queryset.filter(role=role)
    if center:
        queryset = queryset.filter(logistics_center_id=center)
    return Response(UserSerializer(queryset, many=True).data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsManager])
def user_detail(request, pk):
    """Retrieve or update a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)

    serializer = UserSerializer(user, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    action = request.query_params.get('action')
    model_name = request.query_params.get('model_name')
    reference = request.query_params.get('object_reference')
    if action:
        queryset = queryset.filter(action=action)
    if model_name:
        queryset = queryset.filter(model_name=model_name)
    if reference:
        queryset = queryset.filter(object_reference=reference)

    try:
        limit = min(500, max(1, int(request.query_params.get('limit', 100))))
    except ValueError:
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(AuditLogSerializer(queryset[:limit], many=True).data)
