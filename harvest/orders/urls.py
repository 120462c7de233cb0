from django.urls import path
from .views import order_list_create, order_detail, orders_for_shift, order_packing_plan

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/shift/', orders_for_shift, name='orders-for-shift'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/packing-plan/', order_packing_plan, name='order-packing-plan'),
]
