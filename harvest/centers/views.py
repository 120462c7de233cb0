import logging
from datetime import datetime
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.shortcuts import get_object_or_404
from harvest.core.permissions import is_manager
from harvest.core.utils import create_audit_log
from .models import LogisticsCenter, ShiftConfig
from .serializers import LogisticsCenterSerializer, ShiftConfigSerializer
from . import shifts

logger = logging.getLogger('harvest.centers')


def parse_int_param(value, default, minimum=None, maximum=None):
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None:
        result = max(minimum, result)
    if maximum is not None:
        result = min(maximum, result)
    return result


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def center_list_create(request):
    """List logistics centers or create one (create requires manager)"""
    if request.method == 'GET':
        centers = LogisticsCenter.objects.all().order_by('name')
        if request.query_params.get('active_only', 'true').lower() == 'true':
            centers = centers.filter(is_active=True)
        return Response(LogisticsCenterSerializer(centers, many=True).data)

    if not is_manager(request.user):
        logger.warning(f"User {request.user.username} attempted to create a logistics center")
        return Response({'error': 'Only managers can create logistics centers'}, status=status.HTTP_403_FORBIDDEN)

    serializer = LogisticsCenterSerializer(data=request.data)
    if serializer.is_valid():
        center = serializer.save()
        logger.info(f"Logistics center '{center.code}' created by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def center_detail(request, pk):
    """Retrieve or update a logistics center (update requires manager)"""
    center = get_object_or_404(LogisticsCenter, pk=pk)

    if request.method == 'GET':
        return Response(LogisticsCenterSerializer(center).data)

    if not is_manager(request.user):
        return Response({'error': 'Only managers can update logistics centers'}, status=status.HTTP_403_FORBIDDEN)

    serializer = LogisticsCenterSerializer(center, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def center_shifts(request, pk):
    """
    GET: normalized shift windows of a center.
    POST: create or update one shift config by name (managers only).
    """
    center = get_object_or_404(LogisticsCenter, pk=pk)

    if request.method == 'GET':
        return Response(shifts.list_shift_windows(center.id))

    if not is_manager(request.user):
        return Response({'error': 'Only managers can change shift configuration'}, status=status.HTTP_403_FORBIDDEN)

    name = request.data.get('name')
    instance = ShiftConfig.objects.filter(logistics_center=center, name=name).first()
    data = request.data.copy()
    data.setdefault('timezone', center.timezone)
    serializer = ShiftConfigSerializer(instance, data=data, partial=instance is not None)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    config = serializer.save(logistics_center=center)
    create_audit_log(
        request=request,
        action='shift_config_update',
        model_name='ShiftConfig',
        object_id=config.id,
        object_reference=f"{center.code}/{config.name}",
        changes={'created': instance is None, 'data': serializer.data},
    )
    logger.info(f"Shift config {center.code}/{config.name} saved by {request.user.username}")
    return Response(
        shifts.get_shift_windows(center.id, config.name),
        status=status.HTTP_201_CREATED if instance is None else status.HTTP_200_OK,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def center_current_shift(request, pk):
    """Current shift name and its UTC window for a center"""
    center = get_object_or_404(LogisticsCenter, pk=pk)
    name = shifts.get_current_shift(center.id)
    if name == shifts.NO_SHIFT:
        return Response({'shift_name': name, 'start_iso': None, 'end_iso': None})
    return Response(shifts.get_current_shift_window(center.id))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def center_next_shifts(request, pk):
    """Upcoming shifts of a center (?count=5, optional ?from=ISO datetime)"""
    center = get_object_or_404(LogisticsCenter, pk=pk)
    count = parse_int_param(request.query_params.get('count'), 5, minimum=1, maximum=50)

    from_ts = None
    raw_from = request.query_params.get('from')
    if raw_from:
        try:
            from_ts = datetime.fromisoformat(raw_from)
        except ValueError:
            return Response({'error': 'from must be an ISO datetime'}, status=status.HTTP_400_BAD_REQUEST)
        if from_ts.tzinfo is None:
            from_ts = from_ts.replace(tzinfo=shifts.get_zone(center.timezone))

    return Response(shifts.get_next_available_shifts(center.id, count=count, from_ts=from_ts))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_shift_options(request):
    """Shifts a customer may still order into (?horizon_days=1)"""
    horizon = parse_int_param(request.query_params.get('horizon_days'), 1, minimum=0, maximum=14)
    center = request.user.logistics_center
    tz_name = center.timezone if center else settings.HARVEST_DEFAULT_TZ
    return Response({
        'timezone': tz_name,
        'options': shifts.get_create_order_options(horizon_days=horizon, tz_name=tz_name),
    })
