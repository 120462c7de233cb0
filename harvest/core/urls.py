from django.urls import path
from .views import (
    HarvestTokenObtainPairView, HarvestTokenRefreshView, user_me,
    user_list, user_detail, audit_log_list,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', HarvestTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', HarvestTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # User endpoints
    path('users/', user_list, name='user-list'),
    path('users/<int:pk>/', user_detail, name='user-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
]
