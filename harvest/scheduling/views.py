import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from harvest.centers.models import LogisticsCenter
from harvest.core.exceptions import ServiceError
from harvest.core.models import User
from harvest.core.permissions import IsManager, is_manager
from harvest.core.utils import create_audit_log
from .serializers import MonthScheduleWriteSerializer, PlanSerializer, TargetSerializer
from . import services

logger = logging.getLogger('harvest.scheduling')


def resolve_target(request, data):
    """
    (user, role, center) a request acts on. Non-managers always act on
    themselves; managers may name another user, role or center.
    """
    user = request.user
    if not is_manager(user):
        return user, user.role, user.logistics_center

    target = user
    if data.get('user_id'):
        target = get_object_or_404(User, pk=data['user_id'])
    role = data.get('role') or target.role

    if data.get('logistics_center'):
        center = get_object_or_404(LogisticsCenter, pk=data['logistics_center'])
    else:
        center = target.logistics_center or user.logistics_center
    return target, role, center


def resolve_center_param(request):
    center_id = request.query_params.get('logistics_center')
    if center_id:
        return get_object_or_404(LogisticsCenter, pk=center_id)
    return request.user.logistics_center


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def schedule_month(request):
    """
    POST: add a month bitmap (409 if it exists, unless overwrite_existing).
    PATCH: replace an existing month bitmap; days inside the lock window
    can only be changed by managers.
    """
    serializer = MonthScheduleWriteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        user, role, center = resolve_target(request, data)

        if request.method == 'POST':
            result = services.add_monthly_schedule(
                user=user,
                role=role,
                center=center,
                month=data['month'],
                schedule_type=data['schedule_type'],
                bitmap=data['bitmap'],
                overwrite_existing=data['overwrite_existing'],
            )
            action, response_status = 'schedule_add', status.HTTP_201_CREATED
        else:
            result = services.update_monthly_schedule(
                user=user,
                center=center,
                month=data['month'],
                schedule_type=data['schedule_type'],
                bitmap=data['bitmap'],
                can_bypass_lock=is_manager(request.user),
            )
            action, response_status = 'schedule_update', status.HTTP_200_OK
    except ServiceError as e:
        logger.warning(f"Schedule {request.method} by {request.user.username} rejected: {e.message}")
        raise

    create_audit_log(
        request=request,
        action=action,
        model_name='MonthlySchedule',
        object_id=result['user_id'],
        object_reference=f"{result['month']}/{result['schedule_type']}",
        changes={'bitmap': result['bitmap'], 'role': result['role']},
    )
    logger.info(f"{action} {result['month']} ({result['schedule_type']}) for user {result['user_id']} by {request.user.username}")
    return Response(result, status=response_status)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_schedule(request):
    """Current user's active/standby bitmaps for ?month=YYYY-MM"""
    month = request.query_params.get('month')
    if not month:
        return Response({'error': "Query param 'month' (YYYY-MM) is required"}, status=status.HTTP_400_BAD_REQUEST)
    return Response(services.get_schedule_for_user_month(request.user, request.user.logistics_center, month))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_schedule(request, user_id):
    """A user's schedule (all months, or ?month=); non-managers only their own"""
    if not is_manager(request.user) and user_id != request.user.id:
        return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)
    return Response(services.get_schedule_by_user_id(user_id, request.query_params.get('month')))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def schedule_by_role(request):
    """Per-worker masks for ?role=&date=YYYY-MM-DD at a center"""
    role = request.query_params.get('role')
    date = request.query_params.get('date')
    if not role or not date:
        return Response(
            {'error': "Query params 'role' and 'date' (YYYY-MM-DD) are required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    center = resolve_center_param(request)
    if center is None:
        return Response(
            {'error': 'logistics_center must be provided either in query or via user context'},
            status=status.HTTP_400_BAD_REQUEST,
        )
    return Response(services.get_schedule_by_role_and_date(role, date, center))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def workers_for_shift(request):
    """Workers of ?role= scheduled on ?shift= for ?date= (?schedule_type=active|standby)"""
    params = request.query_params
    role = params.get('role')
    shift_name = params.get('shift')
    date = params.get('date')
    schedule_type = params.get('schedule_type')
    if not role or not shift_name or not date or not schedule_type:
        return Response(
            {'error': "Query params 'role', 'shift', 'date' (YYYY-MM-DD) and 'schedule_type' are required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    center = resolve_center_param(request)
    if center is None:
        return Response(
            {'error': 'logistics_center must be provided either in query or via user context'},
            status=status.HTTP_400_BAD_REQUEST,
        )
    return Response(services.get_workers_for_shift(role, shift_name, date, schedule_type, center))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def active_now(request):
    """Is the user on an active shift right now"""
    serializer = TargetSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user, _, center = resolve_target(request, serializer.validated_data)
    return Response(services.get_is_active_now(user, center, request.query_params.get('month')))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def plan_validate(request):
    """Dry-run validation of a month plan; nothing is stored"""
    serializer = PlanSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    planner = services.build_planner(data['year'], data['month'], data['slot_count'], data['active'], data['standby'])
    return Response({
        'validation': planner.validate_all(),
        'payloads': planner.build_payloads(),
        'total_selected': planner.total_selected,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def plan_submit(request):
    """Validate and store a month plan (active + standby)"""
    serializer = PlanSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        user, role, center = resolve_target(request, data)
        result = services.submit_month_plan(
            user=user,
            role=role,
            center=center,
            year=data['year'],
            month=data['month'],
            active=data['active'],
            standby=data['standby'],
            slot_count=data['slot_count'],
            overwrite_existing=data['overwrite_existing'],
        )
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error submitting plan: {str(e)}", exc_info=True)
        return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='schedule_plan_submit',
        model_name='Schedule',
        object_id=user.id,
        object_reference=result['month'],
        changes={'active': result['active'], 'standby': result['standby']},
    )
    return Response(result, status=status.HTTP_201_CREATED)
