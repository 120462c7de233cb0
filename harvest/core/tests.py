"""
Tests for authentication, users and audit logs
"""
from django.test import TestCase, RequestFactory
from rest_framework import status

from .exceptions import BadRequest, Conflict, ServiceError, api_exception_handler
from .models import AuditLog
from .test_utils import TestDataFactory, AuthenticatedAPIClient
from .utils import create_audit_log, get_client_ip


class AuthAPITests(TestCase):
    """Tests for login and the current user endpoint"""

    def setUp(self):
        self.center = TestDataFactory.create_center(name='North Hub', code='LC-N')
        self.user = TestDataFactory.create_user(username='picker1', role='picker', center=self.center)
        self.client = AuthenticatedAPIClient()

    def test_login(self):
        """Test login returns tokens and the user"""
        response = self.client.post(
            '/api/v1/auth/login/', {'username': 'picker1', 'password': 'testpass123'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'picker')
        self.assertFalse(response.data['user']['is_manager'])

    def test_login_wrong_password(self):
        """Test login with a bad password"""
        response = self.client.post(
            '/api/v1/auth/login/', {'username': 'picker1', 'password': 'nope'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        """Test the current user includes center details"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'picker1')
        self.assertEqual(response.data['logistics_center_detail']['code'], 'LC-N')

    def test_me_unauthenticated(self):
        """Test the current user endpoint requires a token"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserAPITests(TestCase):
    """Tests for user management endpoints"""

    def setUp(self):
        self.center = TestDataFactory.create_center()
        self.manager = TestDataFactory.create_user(role='opManager', center=self.center)
        self.picker = TestDataFactory.create_user(role='picker', center=self.center)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_list_users_by_role(self):
        """Test filtering users by role"""
        response = self.client.get('/api/v1/users/?role=picker')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['id'] for u in response.data], [self.picker.id])

    def test_list_users_forbidden_for_workers(self):
        """Test non-managers cannot list users"""
        self.client.authenticate_user(self.picker)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_user_role(self):
        """Test a manager changing a user's role"""
        response = self.client.patch(f'/api/v1/users/{self.picker.id}/', {'role': 'deliverer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.picker.refresh_from_db()
        self.assertEqual(self.picker.role, 'deliverer')

    def test_superuser_is_manager(self):
        """Test superusers count as managers"""
        admin = TestDataFactory.create_user(role='customer', is_superuser=True)
        self.assertTrue(admin.is_manager)
        self.assertFalse(self.picker.is_manager)


class AuditLogTests(TestCase):
    """Tests for audit logging"""

    def setUp(self):
        self.manager = TestDataFactory.create_user(role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_audit_log(self):
        """Test creating an entry with a user override"""
        log = create_audit_log(
            action='task_transition', model_name='PickerTask', object_id=7,
            changes={'from': 'ready', 'to': 'claimed'}, user=self.manager, object_reference='2030-01-05/morning',
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.object_id, '7')
        self.assertEqual(log.user, self.manager)

    def test_create_audit_log_missing_fields(self):
        """Test entries without required fields are skipped"""
        self.assertIsNone(create_audit_log(action='update', model_name='Order'))
        self.assertFalse(AuditLog.objects.exists())

    def test_client_ip(self):
        """Test forwarded addresses win over REMOTE_ADDR"""
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2')
        self.assertEqual(get_client_ip(request), '10.0.0.1')
        self.assertIsNone(get_client_ip(None))

    def test_list_audit_logs(self):
        """Test filtering and limiting audit logs"""
        for i in range(3):
            create_audit_log(action='schedule_add', model_name='MonthlySchedule', object_id=i + 1, user=self.manager)
        create_audit_log(action='task_generate', model_name='PickerTask', object_id=1, user=self.manager)

        response = self.client.get('/api/v1/audit-logs/?action=schedule_add&limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['username'], self.manager.username)

    def test_list_audit_logs_bad_limit(self):
        """Test a non-numeric limit"""
        response = self.client.get('/api/v1/audit-logs/?limit=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ServiceErrorTests(TestCase):
    """Tests for service error translation"""

    def test_payload_with_details(self):
        """Test the response carries error and details"""
        response = api_exception_handler(BadRequest('bad', details={'field': 'x'}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'error': 'bad', 'details': {'field': 'x'}})

    def test_status_codes(self):
        """Test subclass and explicit status codes"""
        self.assertEqual(api_exception_handler(Conflict('taken'), {}).status_code, 409)
        self.assertEqual(ServiceError('boom', status_code=502).status_code, 502)
        self.assertIsNone(api_exception_handler(ValueError('plain'), {}))
