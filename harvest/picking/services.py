"""
Picker task lifecycle.

One task per order and shift carries the order's packing plan. Managers
generate tasks for a shift, pickers claim them, pick box by box and finish
or flag a problem. Every transition is checked against
``PickerTask.TRANSITIONS`` and recorded in the task history and the audit log.
"""
import logging

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from harvest.catalog import packing
from harvest.catalog.services import load_items, load_package_sizes
from harvest.centers import shifts
from harvest.core.exceptions import BadRequest, Conflict, Forbidden, NotFound
from harvest.core.utils import create_audit_log
from harvest.orders.services import list_orders_for_shift, parse_date, check_shift_name
from .filters import PickerTaskFilter
from .models import PickerTask
from .serializers import PickerTaskSerializer

logger = logging.getLogger('harvest.picking')

STATUS_ORDER = ['ready', 'claimed', 'in_progress', 'open', 'problem', 'cancelled', 'done']
FLAGGABLE_STATUSES = ['open', 'ready', 'claimed', 'in_progress', 'problem']
ACTIVE_PICKER_STATUSES = ['claimed', 'in_progress']
DEFAULT_LIMIT = 100
MAX_LIMIT = 500
AUDIT_ACTIONS = {'set_priority': 'task_priority', 'reassign': 'task_reassign'}


def resolve_current_shift_params(center, shift_name=None, shift_date=None, now=None):
    """Fill in the current shift name and the center-local date when omitted"""
    name = shift_name or shifts.get_current_shift(center.id, now)
    if name == shifts.NO_SHIFT:
        raise BadRequest("No active shift right now; shift_name is required")
    check_shift_name(name)

    try:
        tz_name = shifts.get_shift_config(center.id, name)['timezone']
    except NotFound:
        tz_name = center.timezone

    day = parse_date(shift_date, 'shift_date') if shift_date else shifts.local_now(tz_name, now).date()
    return {'shift_name': name, 'shift_date': day, 'tz': tz_name}


def _shift_tasks(center, shift_name, shift_date):
    return PickerTask.objects.filter(logistics_center=center, shift_name=shift_name, shift_date=shift_date)


def _examples(center, shift_name, shift_date):
    latest = _shift_tasks(center, shift_name, shift_date).order_by('-created_at', '-id')[:3]
    return PickerTaskSerializer(latest, many=True).data


def generate_picker_tasks_for_shift(center, created_by, shift_name=None, shift_date=None,
                                    priority=0, auto_set_ready=True, now=None):
    """
    Create a task for every order of the shift that has none yet.
    Open tasks of the shift are moved to ready when ``auto_set_ready``.
    """
    params = resolve_current_shift_params(center, shift_name, shift_date, now)
    name, day = params['shift_name'], params['shift_date']
    result = {
        'created_count': 0,
        'already_existed': 0,
        'shift_name': name,
        'shift_date': day.isoformat(),
        'tz': params['tz'],
        'orders_processed': 0,
        'examples': [],
    }

    orders = list(list_orders_for_shift(center, day, name))
    if not orders:
        return result
    result['orders_processed'] = len(orders)

    existing = set(_shift_tasks(center, name, day).values_list('order_id', flat=True))
    result['already_existed'] = len(existing)
    to_create = [order for order in orders if order.id not in existing]

    if to_create:
        lines_by_order = {order.id: [line.packing_line() for line in order.items.all()] for order in to_create}
        items_by_id, overrides_by_id = load_items(
            line['item_id'] for lines in lines_by_order.values() for line in lines
        )
        package_sizes = load_package_sizes()

        for order in to_create:
            plan = packing.compute_packing_for_order(
                lines_by_order[order.id], items_by_id, package_sizes, overrides_by_id,
            )
            draft = PickerTask(created_by=created_by)
            draft.add_history(created_by, 'create', 'Task created')
            # Another request may have created the task since ``existing`` was read
            _, created = PickerTask.objects.get_or_create(
                logistics_center=center,
                shift_name=name,
                shift_date=day,
                order=order,
                defaults={
                    'plan': plan,
                    'priority': priority,
                    'created_by': created_by,
                    'history': draft.history,
                },
            )
            if created:
                result['created_count'] += 1
            else:
                result['already_existed'] += 1

    if auto_set_ready:
        _shift_tasks(center, name, day).filter(status='open').update(status='ready', updated_at=timezone.now())

    result['examples'] = _examples(center, name, day)
    logger.info(
        f"Generated {result['created_count']} picker tasks for center {center.code} "
        f"{day} {name} ({result['already_existed']} already existed)"
    )
    return result


def _page_limit(page, limit):
    try:
        page = max(1, int(page))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(MAX_LIMIT, max(1, int(limit)))
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    return page, limit


def _status_rank(task):
    return STATUS_ORDER.index(task.status) if task.status in STATUS_ORDER else len(STATUS_ORDER)


def list_picker_tasks_for_shift(center, shift_name, shift_date, status=None, page=1, limit=DEFAULT_LIMIT,
                                assigned_only=False, unassigned_only=False, picker_user_id=None):
    """
    Tasks of a shift ordered by status (ready first), then priority
    (highest first) and age, with counts by status and by assignment.
    """
    check_shift_name(shift_name)
    day = parse_date(shift_date, 'shift_date')
    filterset = PickerTaskFilter({
        'status': status or '',
        'assigned_only': bool(assigned_only),
        'unassigned_only': bool(unassigned_only),
        'picker_user_id': picker_user_id or '',
    }, queryset=_shift_tasks(center, shift_name, day))
    queryset = filterset.qs

    page, limit = _page_limit(page, limit)
    tasks = sorted(
        queryset.select_related('order', 'assigned_picker'),
        key=lambda t: (_status_rank(t), -t.priority, t.created_at, t.id),
    )
    offset = (page - 1) * limit

    by_status = {row['status']: row['count'] for row in queryset.values('status').annotate(count=Count('id'))}
    by_assignment = queryset.aggregate(
        assigned=Count('id', filter=Q(assigned_picker__isnull=False)),
        unassigned=Count('id', filter=Q(assigned_picker__isnull=True)),
    )
    return {
        'shift': {'logistics_center': center.id, 'shift_name': shift_name, 'shift_date': day.isoformat()},
        'pagination': {'page': page, 'limit': limit, 'total': len(tasks)},
        'counts_by_status': by_status,
        'counts_by_assignment': by_assignment,
        'items': tasks[offset:offset + limit],
    }


def ensure_and_list_picker_tasks_for_shift(center, created_by, shift_name, shift_date, **list_kwargs):
    """Generate missing tasks (auto ready), then list"""
    ensure = generate_picker_tasks_for_shift(center, created_by, shift_name, shift_date, priority=0, auto_set_ready=True)
    data = list_picker_tasks_for_shift(center, ensure['shift_name'], ensure['shift_date'], **list_kwargs)
    return {'ensure': ensure, 'data': data}


def get_shift_summary(center, shift_name, shift_date):
    """Task counts and totals for a shift, plus orders still without a task"""
    check_shift_name(shift_name)
    day = parse_date(shift_date, 'shift_date')
    tasks = _shift_tasks(center, shift_name, day)

    by_status = {key: 0 for key in STATUS_ORDER}
    for row in tasks.values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    totals = tasks.aggregate(
        total_tasks=Count('id'),
        total_est_kg=Sum('total_est_kg'),
        total_liters=Sum('total_liters'),
        total_est_units=Sum('total_est_units'),
        assigned=Count('id', filter=Q(assigned_picker__isnull=False)),
    )
    order_ids = set(
        list_orders_for_shift(center, day, shift_name).prefetch_related(None).values_list('id', flat=True)
    )
    with_tasks = set(tasks.values_list('order_id', flat=True))
    total_boxes = sum((t.plan.get('summary') or {}).get('total_boxes', 0) for t in tasks.only('plan'))

    return {
        'shift': {'logistics_center': center.id, 'shift_name': shift_name, 'shift_date': day.isoformat()},
        'counts_by_status': by_status,
        'total_tasks': totals['total_tasks'],
        'assigned': totals['assigned'],
        'unassigned': totals['total_tasks'] - totals['assigned'],
        'total_boxes': total_boxes,
        'total_est_kg': round(totals['total_est_kg'] or 0, 3),
        'total_liters': round(totals['total_liters'] or 0, 3),
        'total_est_units': totals['total_est_units'] or 0,
        'orders_in_shift': len(order_ids),
        'orders_without_task': len(order_ids - with_tasks),
    }


# Transitions

def _locked_task(task_id):
    """Row-locked task; call inside transaction.atomic()"""
    task = PickerTask.objects.select_for_update().filter(pk=task_id).first()
    if task is None:
        raise NotFound("Task not found")
    return task


def _assert_transition(task, to_status):
    if not task.can_transition(to_status):
        raise Conflict(f"Illegal status transition: {task.status} -> {to_status}")


def _record(task, actor, action, note='', meta=None):
    task.add_history(actor, action, note, meta)
    task.save()
    create_audit_log(
        user=actor,
        action=AUDIT_ACTIONS.get(action, 'task_transition'),
        model_name='PickerTask',
        object_id=task.id,
        object_reference=f"{task.shift_date}/{task.shift_name}/{task.order_id}",
        changes={'action': action, 'status': task.status, 'note': note, 'meta': meta},
    )
    logger.info(f"Task {task.id}: {action} by {actor.username if actor else 'system'} -> {task.status}")
    return task


def claim_task(task_id, picker):
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.status != 'ready' or task.assigned_picker_id is not None:
            raise Conflict("Task not claimable")
        task.status = 'claimed'
        task.assigned_picker = picker
        task.started_at = task.started_at or timezone.now()
        return _record(task, picker, 'claim', 'Task claimed')


def claim_next_ready(center, picker, shift_name=None, shift_date=None, now=None):
    """
    Claim the highest priority ready task of the (current) shift. A picker
    who already holds an active task in the shift gets that task back.
    """
    params = resolve_current_shift_params(center, shift_name, shift_date, now)
    shift = {
        'logistics_center': center.id,
        'shift_name': params['shift_name'],
        'shift_date': params['shift_date'].isoformat(),
    }
    tasks = _shift_tasks(center, params['shift_name'], params['shift_date'])

    with transaction.atomic():
        held = tasks.filter(assigned_picker=picker, status__in=ACTIVE_PICKER_STATUSES).order_by('created_at').first()
        if held is not None:
            return {'shift': shift, 'task': held, 'already_assigned': True}

        task = (
            tasks.select_for_update(skip_locked=True)
            .filter(status='ready', assigned_picker__isnull=True)
            .order_by('-priority', 'created_at', 'id')
            .first()
        )
        if task is None:
            raise NotFound("No ready tasks available for the current shift", details={'shift': shift})

        task.status = 'claimed'
        task.assigned_picker = picker
        task.started_at = task.started_at or timezone.now()
        _record(task, picker, 'claim', 'Claimed next ready task')
    return {'shift': shift, 'task': task, 'already_assigned': False}


def start_picking(task_id, picker):
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.assigned_picker_id != picker.id:
            raise Forbidden("Only the assigned picker can start this task")
        _assert_transition(task, 'in_progress')
        task.status = 'in_progress'
        task.started_at = task.started_at or timezone.now()
        return _record(task, picker, 'start_picking')


def update_progress(task_id, actor, placed_kg=None, placed_units=None, current_step_index=None,
                    current_box_index=None, finish=False):
    """Record picking progress; a claimed task starts implicitly"""
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.status not in ACTIVE_PICKER_STATUSES:
            raise Conflict("Cannot update progress unless task is claimed/in_progress")

        if current_step_index is not None:
            task.current_step_index = current_step_index
        if current_box_index is not None:
            task.current_box_index = current_box_index
        if placed_kg is not None:
            task.placed_kg = placed_kg
        if placed_units is not None:
            task.placed_units = placed_units

        if task.status == 'claimed':
            task.status = 'in_progress'
            task.started_at = task.started_at or timezone.now()

        if finish:
            _assert_transition(task, 'done')
            task.status = 'done'
            task.finished_at = timezone.now()

        return _record(task, actor, 'progress_update', meta={
            'placed_kg': task.placed_kg,
            'placed_units': task.placed_units,
            'current_box_index': task.current_box_index,
            'current_step_index': task.current_step_index,
            'status': task.status,
        })


def finish_task(task_id, actor, note=None):
    with transaction.atomic():
        task = _locked_task(task_id)
        _assert_transition(task, 'done')
        task.status = 'done'
        task.finished_at = timezone.now()
        return _record(task, actor, 'finish', note or 'Finished picking')


def flag_problem(task_id, actor, note=None, meta=None):
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.status not in FLAGGABLE_STATUSES:
            raise Conflict(f"Cannot flag problem from status {task.status}")
        task.status = 'problem'
        return _record(task, actor, 'flag_problem', note or '', meta)


def return_problem_to_ready(task_id, actor, note=None):
    with transaction.atomic():
        task = _locked_task(task_id)
        _assert_transition(task, 'ready')
        task.status = 'ready'
        task.assigned_picker = None
        return _record(task, actor, 'problem_resolved', note or 'Returned to ready')


def cancel_task(task_id, actor, note=None):
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.status in PickerTask.TERMINAL_STATUSES:
            raise Conflict(f"Task already terminal: {task.status}")
        _assert_transition(task, 'cancelled')
        task.status = 'cancelled'
        return _record(task, actor, 'cancel', note or '')


def set_priority(task_id, actor, priority):
    with transaction.atomic():
        task = _locked_task(task_id)
        task.priority = priority
        return _record(task, actor, 'set_priority', f'priority={priority}')


def reassign(task_id, actor, picker=None):
    """Assign to another picker, or unassign with ``picker=None``"""
    with transaction.atomic():
        task = _locked_task(task_id)
        if task.status in PickerTask.TERMINAL_STATUSES:
            raise Conflict(f"Task already terminal: {task.status}")
        task.assigned_picker = picker
        note = f'assigned to {picker.id}' if picker else 'unassigned'
        return _record(task, actor, 'reassign', note)
