from django.urls import path, re_path
from .views import generate_tasks, shift_tasks, shift_summary, claim_next, task_detail, task_action

urlpatterns = [
    path('picker-tasks/generate/', generate_tasks, name='picker-tasks-generate'),
    path('picker-tasks/shift/', shift_tasks, name='picker-tasks-shift'),
    path('picker-tasks/shift/summary/', shift_summary, name='picker-tasks-shift-summary'),
    path('picker-tasks/shift/claim-next/', claim_next, name='picker-tasks-claim-next'),
    path('picker-tasks/<int:pk>/', task_detail, name='picker-task-detail'),
    re_path(
        r'^picker-tasks/(?P<pk>\d+)/(?P<action>claim|start|progress|finish|problem|reopen|cancel|priority|reassign)/$',
        task_action,
        name='picker-task-action',
    ),
]
