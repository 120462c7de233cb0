from django.urls import path
from .views import (
    schedule_month, my_schedule, user_schedule, schedule_by_role,
    workers_for_shift, active_now, plan_validate, plan_submit,
)

urlpatterns = [
    path('schedule/month/', schedule_month, name='schedule-month'),
    path('schedule/my/', my_schedule, name='schedule-my'),
    path('schedule/user/<int:user_id>/', user_schedule, name='schedule-user'),
    path('schedule/by-role/', schedule_by_role, name='schedule-by-role'),
    path('schedule/workers/', workers_for_shift, name='schedule-workers'),
    path('schedule/active-now/', active_now, name='schedule-active-now'),
    path('schedule/plan/validate/', plan_validate, name='schedule-plan-validate'),
    path('schedule/plan/', plan_submit, name='schedule-plan-submit'),
]
