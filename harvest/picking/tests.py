"""
Tests for picker task generation and lifecycle
"""
from datetime import date, datetime
from datetime import timezone as dt_timezone
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from harvest.catalog.services import load_items
from harvest.core.exceptions import BadRequest, Conflict, Forbidden, NotFound
from harvest.core.models import AuditLog
from harvest.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import services
from .models import PickerTask, rollup_plan

SHIFT_DATE = date(2030, 1, 5)


class PickingTestMixin:
    """Center with a manager, two pickers, box sizes and two morning orders"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        self.manager = TestDataFactory.create_user(role='opManager', center=self.center)
        self.picker = TestDataFactory.create_user(role='picker', center=self.center)
        self.other_picker = TestDataFactory.create_user(role='picker', center=self.center)
        self.customer = TestDataFactory.create_user(role='customer', center=self.center)
        TestDataFactory.create_package_sizes()
        self.tomato = TestDataFactory.create_item(type='Tomato')
        self.apple = TestDataFactory.create_item(type='Apple', avg_weight_per_unit_gr=200)
        self.order_a = TestDataFactory.create_order(self.customer, self.center, SHIFT_DATE, items=[(self.tomato, 3)])
        self.order_b = TestDataFactory.create_order(self.customer, self.center, SHIFT_DATE, items=[
            (self.tomato, 12),
            {'item': self.apple, 'unit_mode': 'unit', 'units': 10, 'avg_weight_per_unit_kg': 0.2},
        ])

    def generate(self, **kwargs):
        return services.generate_picker_tasks_for_shift(
            self.center, self.manager, shift_name='morning', shift_date=SHIFT_DATE, **kwargs
        )

    def task_for(self, order):
        return PickerTask.objects.get(order=order)


class PickerTaskModelTests(TestCase):
    """Tests for plan rollups"""

    def test_rollup_plan(self):
        """Test kg, liters and units are summed over boxes"""
        plan = {'boxes': [
            {'est_weight_kg': 3.0, 'est_fill_liters': 5.0, 'contents': [{'mode': 'kg', 'units': None}]},
            {'est_weight_kg': 2.0, 'est_fill_liters': 3.077, 'contents': [{'mode': 'unit', 'units': 10}]},
        ]}
        self.assertEqual(rollup_plan(plan), (5.0, 8.077, 10))
        self.assertEqual(rollup_plan(None), (0, 0, 0))

    def test_can_transition(self):
        """Test the transition table"""
        task = PickerTask(status='ready')
        self.assertTrue(task.can_transition('claimed'))
        self.assertFalse(task.can_transition('done'))
        task.status = 'done'
        self.assertFalse(task.can_transition('cancelled'))


class GenerateTasksTests(PickingTestMixin, TestCase):
    """Tests for task generation"""

    def test_generate_creates_one_task_per_order(self):
        """Test tasks are created ready with a packing plan"""
        result = self.generate()
        self.assertEqual(result['created_count'], 2)
        self.assertEqual(result['already_existed'], 0)
        self.assertEqual(result['orders_processed'], 2)
        self.assertEqual(result['shift_date'], '2030-01-05')
        self.assertEqual(len(result['examples']), 2)

        task = self.task_for(self.order_b)
        self.assertEqual(task.status, 'ready')
        self.assertEqual(task.total_est_units, 10)
        self.assertAlmostEqual(task.total_est_kg, 14.0, places=2)
        self.assertEqual(task.plan['summary']['total_kg'], task.total_est_kg)
        self.assertEqual(task.history[0]['action'], 'create')
        self.assertEqual(task.created_by, self.manager)

    def test_generate_is_idempotent(self):
        """Test a second run creates nothing"""
        self.generate()
        result = self.generate()
        self.assertEqual(result['created_count'], 0)
        self.assertEqual(result['already_existed'], 2)
        self.assertEqual(PickerTask.objects.count(), 2)

    def test_generate_tolerates_concurrent_creation(self):
        """Test a task created by another request mid-generation is counted, not duplicated"""
        def create_then_load(item_ids):
            PickerTask.objects.create(
                logistics_center=self.center, shift_name='morning', shift_date=SHIFT_DATE,
                order=self.order_a, created_by=self.manager,
            )
            return load_items(item_ids)

        with patch('harvest.picking.services.load_items', side_effect=create_then_load):
            result = self.generate()

        self.assertEqual(result['created_count'], 1)
        self.assertEqual(result['already_existed'], 1)
        self.assertEqual(PickerTask.objects.filter(order=self.order_a).count(), 1)
        self.assertEqual(PickerTask.objects.count(), 2)

    def test_generate_without_auto_ready(self):
        """Test tasks stay open and cannot be claimed"""
        self.generate(auto_set_ready=False, priority=4)
        task = self.task_for(self.order_a)
        self.assertEqual(task.status, 'open')
        self.assertEqual(task.priority, 4)
        with self.assertRaises(Conflict):
            services.claim_task(task.id, self.picker)

    def test_generate_skips_closed_orders(self):
        """Test cancelled orders get no task"""
        self.order_b.status = 'cancelled'
        self.order_b.save()
        result = self.generate()
        self.assertEqual(result['created_count'], 1)

    def test_generate_for_empty_shift(self):
        """Test a shift without orders"""
        result = services.generate_picker_tasks_for_shift(
            self.center, self.manager, shift_name='night', shift_date=SHIFT_DATE,
        )
        self.assertEqual(result['created_count'], 0)
        self.assertEqual(result['orders_processed'], 0)

    def test_current_shift_params(self):
        """Test the shift defaults to the one running now"""
        TestDataFactory.create_shift_configs(self.center)
        now = datetime(2025, 11, 3, 8, 0, tzinfo=dt_timezone.utc)
        params = services.resolve_current_shift_params(self.center, now=now)
        self.assertEqual(params['shift_name'], 'morning')
        self.assertEqual(params['shift_date'], date(2025, 11, 3))
        self.assertEqual(params['tz'], 'Asia/Jerusalem')

    def test_no_current_shift(self):
        """Test a center without shifts needs an explicit shift name"""
        with self.assertRaises(BadRequest):
            services.resolve_current_shift_params(self.center)


class ListTasksTests(PickingTestMixin, TestCase):
    """Tests for listing and summarising a shift"""

    def setUp(self):
        super().setUp()
        self.order_c = TestDataFactory.create_order(self.customer, self.center, SHIFT_DATE, items=[(self.tomato, 1)])
        self.generate()
        self.task_a = self.task_for(self.order_a)
        self.task_b = self.task_for(self.order_b)
        self.task_c = self.task_for(self.order_c)

    def test_sorted_by_status_then_priority(self):
        """Test ready tasks first, highest priority first"""
        services.set_priority(self.task_b.id, self.manager, 5)
        services.claim_task(self.task_a.id, self.picker)

        result = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE)
        self.assertEqual([t.id for t in result['items']], [self.task_b.id, self.task_c.id, self.task_a.id])
        self.assertEqual(result['counts_by_status'], {'ready': 2, 'claimed': 1})
        self.assertEqual(result['counts_by_assignment'], {'assigned': 1, 'unassigned': 2})
        self.assertEqual(result['pagination'], {'page': 1, 'limit': 100, 'total': 3})

    def test_filters_and_paging(self):
        """Test assignment filters and page limits"""
        services.claim_task(self.task_a.id, self.picker)

        assigned = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE, assigned_only=True)
        self.assertEqual([t.id for t in assigned['items']], [self.task_a.id])

        both = services.list_picker_tasks_for_shift(
            self.center, 'morning', SHIFT_DATE, assigned_only=True, unassigned_only=True,
        )
        self.assertEqual(len(both['items']), 1)

        unassigned = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE, unassigned_only=True)
        self.assertEqual(len(unassigned['items']), 2)

        mine = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE, picker_user_id=self.picker.id)
        self.assertEqual(len(mine['items']), 1)

        page = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE, page=2, limit=2)
        self.assertEqual(len(page['items']), 1)
        self.assertEqual(page['pagination']['total'], 3)

    def test_status_filter(self):
        """Test filtering by one status"""
        services.flag_problem(self.task_c.id, self.picker, 'Crushed box')
        result = services.list_picker_tasks_for_shift(self.center, 'morning', SHIFT_DATE, status='problem')
        self.assertEqual([t.id for t in result['items']], [self.task_c.id])

    def test_shift_summary(self):
        """Test counts, totals and orders without tasks"""
        TestDataFactory.create_order(self.customer, self.center, SHIFT_DATE, items=[(self.tomato, 2)])
        services.claim_task(self.task_a.id, self.picker)

        summary = services.get_shift_summary(self.center, 'morning', SHIFT_DATE)
        self.assertEqual(summary['total_tasks'], 3)
        self.assertEqual(summary['assigned'], 1)
        self.assertEqual(summary['unassigned'], 2)
        self.assertEqual(summary['counts_by_status']['ready'], 2)
        self.assertEqual(summary['counts_by_status']['done'], 0)
        self.assertEqual(summary['orders_in_shift'], 4)
        self.assertEqual(summary['orders_without_task'], 1)
        self.assertEqual(summary['total_est_units'], 10)
        self.assertGreaterEqual(summary['total_boxes'], 3)


class TaskTransitionTests(PickingTestMixin, TestCase):
    """Tests for the picker task state machine"""

    def setUp(self):
        super().setUp()
        self.generate()
        self.task = self.task_for(self.order_a)

    def test_happy_path(self):
        """Test claim, start, progress and finish"""
        task = services.claim_task(self.task.id, self.picker)
        self.assertEqual(task.status, 'claimed')
        self.assertEqual(task.assigned_picker, self.picker)
        self.assertIsNotNone(task.started_at)

        task = services.start_picking(self.task.id, self.picker)
        self.assertEqual(task.status, 'in_progress')

        task = services.update_progress(self.task.id, self.picker, placed_kg=1.5, current_step_index=1)
        self.assertEqual(task.placed_kg, 1.5)
        self.assertEqual(task.current_step_index, 1)

        task = services.finish_task(self.task.id, self.picker)
        self.assertEqual(task.status, 'done')
        self.assertIsNotNone(task.finished_at)
        self.assertEqual(
            [h['action'] for h in task.history],
            ['create', 'claim', 'start_picking', 'progress_update', 'finish'],
        )
        self.assertEqual(task.history[-1]['by']['role'], 'picker')
        self.assertEqual(AuditLog.objects.filter(action='task_transition').count(), 4)

    def test_claim_twice(self):
        """Test a claimed task cannot be claimed again"""
        services.claim_task(self.task.id, self.picker)
        with self.assertRaises(Conflict):
            services.claim_task(self.task.id, self.other_picker)

    def test_only_assigned_picker_starts(self):
        """Test another picker cannot start the task"""
        services.claim_task(self.task.id, self.picker)
        with self.assertRaises(Forbidden):
            services.start_picking(self.task.id, self.other_picker)

    def test_progress_starts_and_finishes(self):
        """Test progress on a claimed task starts it and can finish it"""
        services.claim_task(self.task.id, self.picker)
        task = services.update_progress(self.task.id, self.picker, placed_units=3)
        self.assertEqual(task.status, 'in_progress')

        task = services.update_progress(self.task.id, self.picker, finish=True)
        self.assertEqual(task.status, 'done')

    def test_progress_requires_active_task(self):
        """Test progress on a ready task"""
        with self.assertRaises(Conflict):
            services.update_progress(self.task.id, self.picker, placed_kg=1)

    def test_finish_from_ready(self):
        """Test finishing a task that was never started"""
        with self.assertRaises(Conflict) as ctx:
            services.finish_task(self.task.id, self.picker)
        self.assertEqual(ctx.exception.message, "Illegal status transition: ready -> done")

    def test_problem_and_reopen(self):
        """Test flagging a problem and returning the task to ready"""
        services.claim_task(self.task.id, self.picker)
        task = services.flag_problem(self.task.id, self.picker, 'Missing tomatoes', {'missing_kg': 1})
        self.assertEqual(task.status, 'problem')
        self.assertEqual(task.history[-1]['meta'], {'missing_kg': 1})

        task = services.return_problem_to_ready(self.task.id, self.manager)
        self.assertEqual(task.status, 'ready')
        self.assertIsNone(task.assigned_picker)

    def test_flag_problem_on_open_task(self):
        """Test open tasks can be flagged"""
        PickerTask.objects.filter(pk=self.task.id).update(status='open')
        self.assertEqual(services.flag_problem(self.task.id, self.manager).status, 'problem')

    def test_cannot_flag_finished_task(self):
        """Test done tasks cannot be flagged"""
        PickerTask.objects.filter(pk=self.task.id).update(status='done')
        with self.assertRaises(Conflict):
            services.flag_problem(self.task.id, self.picker)

    def test_cancel(self):
        """Test cancelling and cancelling again"""
        task = services.cancel_task(self.task.id, self.manager, 'Customer cancelled')
        self.assertEqual(task.status, 'cancelled')
        with self.assertRaises(Conflict):
            services.cancel_task(self.task.id, self.manager)

    def test_priority_and_reassign(self):
        """Test manager updates are audited with their own actions"""
        services.set_priority(self.task.id, self.manager, 9)
        task = services.reassign(self.task.id, self.manager, self.other_picker)
        self.assertEqual(task.priority, 9)
        self.assertEqual(task.assigned_picker, self.other_picker)
        self.assertTrue(AuditLog.objects.filter(action='task_priority').exists())
        self.assertTrue(AuditLog.objects.filter(action='task_reassign').exists())

        task = services.reassign(self.task.id, self.manager)
        self.assertIsNone(task.assigned_picker)

    def test_reassign_terminal_task(self):
        """Test finished tasks cannot be reassigned"""
        services.cancel_task(self.task.id, self.manager)
        with self.assertRaises(Conflict):
            services.reassign(self.task.id, self.manager, self.picker)

    def test_missing_task(self):
        """Test transitions on an unknown task"""
        with self.assertRaises(NotFound):
            services.claim_task(999999, self.picker)


class ClaimNextTests(PickingTestMixin, TestCase):
    """Tests for claiming the next ready task"""

    def setUp(self):
        super().setUp()
        self.generate()
        self.task_a = self.task_for(self.order_a)
        self.task_b = self.task_for(self.order_b)

    def claim_next(self, picker):
        return services.claim_next_ready(self.center, picker, shift_name='morning', shift_date=SHIFT_DATE)

    def test_highest_priority_first(self):
        """Test the highest priority ready task is claimed"""
        PickerTask.objects.filter(pk=self.task_b.id).update(priority=5)
        result = self.claim_next(self.picker)
        self.assertEqual(result['task'].id, self.task_b.id)
        self.assertFalse(result['already_assigned'])
        self.assertEqual(result['shift']['shift_date'], '2030-01-05')

    def test_oldest_first_on_equal_priority(self):
        """Test creation order breaks ties"""
        self.assertEqual(self.claim_next(self.picker)['task'].id, self.task_a.id)

    def test_held_task_returned(self):
        """Test a picker with an active task gets it back"""
        first = self.claim_next(self.picker)
        again = self.claim_next(self.picker)
        self.assertEqual(again['task'].id, first['task'].id)
        self.assertTrue(again['already_assigned'])

    def test_nothing_left(self):
        """Test every ready task already claimed"""
        self.claim_next(self.picker)
        self.claim_next(self.other_picker)
        third = TestDataFactory.create_user(role='picker', center=self.center)
        with self.assertRaises(NotFound) as ctx:
            self.claim_next(third)
        self.assertEqual(ctx.exception.details['shift']['shift_name'], 'morning')


class PickerTaskAPITests(PickingTestMixin, TestCase):
    """Tests for picker task endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.shift_data = {'shift_name': 'morning', 'shift_date': '2030-01-05'}

    def test_generate_endpoint(self):
        """Test generating tasks via API"""
        response = self.client.post('/api/v1/picker-tasks/generate/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_count'], 2)
        self.assertTrue(AuditLog.objects.filter(action='task_generate').exists())

        response = self.client.post('/api/v1/picker-tasks/generate/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['already_existed'], 2)

    def test_generate_forbidden_for_pickers(self):
        """Test pickers cannot generate tasks"""
        self.client.authenticate_user(self.picker)
        response = self.client.post('/api/v1/picker-tasks/generate/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_list_ensures_tasks(self):
        """Test the manager list generates missing tasks"""
        response = self.client.get('/api/v1/picker-tasks/shift/?shift_name=morning&shift_date=2030-01-05')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['ensure']['created_count'], 2)
        self.assertEqual(len(response.data['data']['items']), 2)

    def test_picker_list_does_not_generate(self):
        """Test pickers only read existing tasks"""
        self.client.authenticate_user(self.picker)
        response = self.client.get('/api/v1/picker-tasks/shift/?shift_name=morning&shift_date=2030-01-05')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['ensure'])
        self.assertEqual(response.data['data']['items'], [])
        self.assertFalse(PickerTask.objects.exists())

    def test_list_requires_shift(self):
        """Test the shift params are required"""
        response = self.client.get('/api/v1/picker-tasks/shift/?shift_name=morning')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_endpoint(self):
        """Test the shift summary"""
        self.generate()
        response = self.client.get('/api/v1/picker-tasks/shift/summary/?shift_name=morning&shift_date=2030-01-05')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total_tasks'], 2)

        response = self.client.get('/api/v1/picker-tasks/shift/summary/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_claim_next_endpoint(self):
        """Test a picker claiming the next task"""
        self.generate()
        self.client.authenticate_user(self.picker)
        response = self.client.post('/api/v1/picker-tasks/shift/claim-next/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['task']['status'], 'claimed')
        self.assertEqual(response.data['data']['task']['assigned_picker_username'], self.picker.username)
        self.assertFalse(response.data['data']['already_assigned'])

    def test_claim_next_without_center(self):
        """Test a picker with no center"""
        loose = TestDataFactory.create_user(role='picker')
        self.client.authenticate_user(loose)
        response = self.client.post('/api/v1/picker-tasks/shift/claim-next/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_task_actions(self):
        """Test the picker flow through the action endpoints"""
        self.generate()
        task = self.task_for(self.order_a)
        self.client.authenticate_user(self.picker)

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/claim/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'claimed')

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/start/')
        self.assertEqual(response.data['status'], 'in_progress')

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/progress/', {'placed_kg': 1.5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['placed_kg'], 1.5)

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/finish/', {'note': 'All good'}, format='json')
        self.assertEqual(response.data['status'], 'done')

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/problem/', {'note': 'Late'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)

    def test_manager_actions(self):
        """Test priority and cancel are manager-only"""
        self.generate()
        task = self.task_for(self.order_a)

        self.client.authenticate_user(self.picker)
        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/priority/', {'priority': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/priority/', {'priority': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['priority'], 3)

        response = self.client.post(
            f'/api/v1/picker-tasks/{task.id}/reassign/', {'picker_user_id': self.other_picker.id}, format='json',
        )
        self.assertEqual(response.data['assigned_picker'], self.other_picker.id)

        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/cancel/', {}, format='json')
        self.assertEqual(response.data['status'], 'cancelled')

    def test_task_detail_other_center(self):
        """Test pickers cannot read tasks of another center"""
        self.generate()
        task = self.task_for(self.order_a)
        outsider = TestDataFactory.create_user(role='picker', center=TestDataFactory.create_center())
        self.client.authenticate_user(outsider)
        response = self.client.get(f'/api/v1/picker-tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.picker)
        response = self.client.get(f'/api/v1/picker-tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order'], self.order_a.id)

    def test_actions_limited_to_center_pickers(self):
        """Test users from another center and non-pickers cannot work on tasks"""
        self.generate()
        task = self.task_for(self.order_a)
        other_center = TestDataFactory.create_center()

        for user in (
            TestDataFactory.create_user(role='customer', center=other_center),
            TestDataFactory.create_user(role='picker', center=other_center),
            self.customer,
        ):
            self.client.authenticate_user(user)
            response = self.client.post(f'/api/v1/picker-tasks/{task.id}/claim/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/picker-tasks/shift/claim-next/', self.shift_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        task.refresh_from_db()
        self.assertEqual(task.status, 'ready')
        self.assertIsNone(task.assigned_picker)

    def test_only_assigned_picker_progresses(self):
        """Test progress, finish and problem belong to the assigned picker"""
        self.generate()
        task = self.task_for(self.order_a)
        services.claim_task(task.id, self.picker)

        self.client.authenticate_user(self.other_picker)
        for action, data in (('progress', {'finish': True}), ('finish', {}), ('problem', {'note': 'Mine now'})):
            response = self.client.post(f'/api/v1/picker-tasks/{task.id}/{action}/', data, format='json')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        task.refresh_from_db()
        self.assertEqual(task.status, 'claimed')
        self.assertEqual(task.assigned_picker, self.picker)

        self.client.authenticate_user(self.picker)
        response = self.client.post(f'/api/v1/picker-tasks/{task.id}/progress/', {'finish': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'done')

    def test_unknown_task_for_picker(self):
        """Test acting on a missing task"""
        self.client.authenticate_user(self.picker)
        response = self.client.post('/api/v1/picker-tasks/999999/claim/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
