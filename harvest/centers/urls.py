from django.urls import path
from .views import (
    center_list_create, center_detail, center_shifts,
    center_current_shift, center_next_shifts, order_shift_options,
)

urlpatterns = [
    path('centers/', center_list_create, name='center-list-create'),
    path('centers/<int:pk>/', center_detail, name='center-detail'),
    path('centers/<int:pk>/shifts/', center_shifts, name='center-shifts'),
    path('centers/<int:pk>/shifts/current/', center_current_shift, name='center-current-shift'),
    path('centers/<int:pk>/shifts/next/', center_next_shifts, name='center-next-shifts'),
    path('shifts/order-options/', order_shift_options, name='shift-order-options'),
]
