import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from harvest.centers.models import LogisticsCenter
from harvest.core.models import User
from harvest.core.permissions import IsManager, is_manager
from harvest.core.utils import create_audit_log
from .models import PickerTask
from .serializers import (
    PickerTaskSerializer, ShiftParamsSerializer, GenerateTasksSerializer, ShiftListSerializer,
    ProgressSerializer, NoteSerializer, PrioritySerializer, ReassignSerializer,
)
from . import services

logger = logging.getLogger('harvest.picking')

MANAGER_ACTIONS = {'reopen', 'cancel', 'priority', 'reassign'}
ASSIGNED_PICKER_ACTIONS = {'progress', 'finish', 'problem'}
PICKER_ROLE = 'picker'


def resolve_center(request, data):
    """Managers may name a center; everyone else works in their own"""
    center_id = data.get('logistics_center')
    if center_id and is_manager(request.user):
        return get_object_or_404(LogisticsCenter, pk=center_id)
    return request.user.logistics_center


def no_center_response():
    return Response(
        {'error': 'logistics_center must be provided either in query or via user context'},
        status=status.HTTP_400_BAD_REQUEST,
    )


def with_serialized_items(data):
    return {**data, 'items': PickerTaskSerializer(data['items'], many=True).data}


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def generate_tasks(request):
    """Create picker tasks for every order of a shift (defaults to the current shift)"""
    serializer = GenerateTasksSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    center = resolve_center(request, data)
    if center is None:
        return no_center_response()

    result = services.generate_picker_tasks_for_shift(
        center,
        request.user,
        shift_name=data.get('shift_name'),
        shift_date=data.get('shift_date'),
        priority=data['priority'],
        auto_set_ready=data['auto_set_ready'],
    )
    if result['created_count']:
        create_audit_log(
            request=request,
            action='task_generate',
            model_name='PickerTask',
            object_id=center.id,
            object_reference=f"{result['shift_date']}/{result['shift_name']}",
            changes={'created_count': result['created_count'], 'orders_processed': result['orders_processed']},
        )
    return Response(result, status=status.HTTP_201_CREATED if result['created_count'] else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def shift_tasks(request):
    """
    Tasks of ?shift_name=&shift_date= (filters: status, assigned_only,
    unassigned_only, picker_user_id; paging: page, limit). Managers generate
    missing tasks first unless ?ensure=false.
    """
    serializer = ShiftListSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    center = resolve_center(request, data)
    if center is None:
        return no_center_response()

    list_kwargs = {
        'status': data.get('status'),
        'page': data['page'],
        'limit': data['limit'],
        'assigned_only': data['assigned_only'],
        'unassigned_only': data['unassigned_only'],
        'picker_user_id': data.get('picker_user_id'),
    }
    if data['ensure'] and is_manager(request.user):
        result = services.ensure_and_list_picker_tasks_for_shift(
            center, request.user, data['shift_name'], data['shift_date'], **list_kwargs
        )
        return Response({'ensure': result['ensure'], 'data': with_serialized_items(result['data'])})

    result = services.list_picker_tasks_for_shift(center, data['shift_name'], data['shift_date'], **list_kwargs)
    return Response({'ensure': None, 'data': with_serialized_items(result)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def shift_summary(request):
    """Counts and totals for ?shift_name=&shift_date="""
    serializer = ShiftParamsSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if not data.get('shift_name') or not data.get('shift_date'):
        return Response(
            {'error': "Query params 'shift_name' and 'shift_date' (YYYY-MM-DD) are required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    center = resolve_center(request, data)
    if center is None:
        return no_center_response()
    return Response({'data': services.get_shift_summary(center, data['shift_name'], data['shift_date'])})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def claim_next(request):
    """Claim the first ready task of the current shift at the picker's center"""
    if not is_manager(request.user) and request.user.role != PICKER_ROLE:
        return Response({'error': 'Only pickers can work on tasks'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ShiftParamsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    center = request.user.logistics_center
    if center is None:
        return no_center_response()

    result = services.claim_next_ready(
        center, request.user, shift_name=data.get('shift_name'), shift_date=data.get('shift_date'),
    )
    return Response({'data': {**result, 'task': PickerTaskSerializer(result['task']).data}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def task_detail(request, pk):
    task = get_object_or_404(PickerTask.objects.select_related('order', 'assigned_picker'), pk=pk)
    if not is_manager(request.user) and task.logistics_center_id != request.user.logistics_center_id:
        return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)
    return Response(PickerTaskSerializer(task).data)


def run_action(request, pk, action):
    user = request.user

    if action == 'claim':
        return services.claim_task(pk, user)
    if action == 'start':
        return services.start_picking(pk, user)
    if action == 'progress':
        serializer = ProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return services.update_progress(pk, user, **serializer.validated_data)

    if action == 'priority':
        serializer = PrioritySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return services.set_priority(pk, user, serializer.validated_data['priority'])
    if action == 'reassign':
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        picker_id = serializer.validated_data['picker_user_id']
        picker = get_object_or_404(User, pk=picker_id) if picker_id else None
        return services.reassign(pk, user, picker)

    serializer = NoteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    note = serializer.validated_data['note']
    if action == 'finish':
        return services.finish_task(pk, user, note)
    if action == 'problem':
        return services.flag_problem(pk, user, note, serializer.validated_data['meta'])
    if action == 'reopen':
        return services.return_problem_to_ready(pk, user, note)
    return services.cancel_task(pk, user, note)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def task_action(request, pk, action):
    """
    claim, start, progress, finish, problem (pickers);
    reopen, cancel, priority, reassign (managers).
    """
    user = request.user
    if not is_manager(user):
        if action in MANAGER_ACTIONS:
            logger.warning(f"User {user.username} attempted '{action}' on task {pk}")
            return Response({'error': f'Only managers can {action} tasks'}, status=status.HTTP_403_FORBIDDEN)
        if user.role != PICKER_ROLE:
            return Response({'error': 'Only pickers can work on tasks'}, status=status.HTTP_403_FORBIDDEN)

        task = get_object_or_404(PickerTask, pk=pk)
        if task.logistics_center_id != user.logistics_center_id:
            return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)
        if action in ASSIGNED_PICKER_ACTIONS and task.assigned_picker_id != user.id:
            return Response(
                {'error': f'Only the assigned picker can {action} this task'}, status=status.HTTP_403_FORBIDDEN
            )

    task = run_action(request, pk, action)
    return Response(PickerTaskSerializer(task).data)
