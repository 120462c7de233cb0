import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from harvest.centers.models import LogisticsCenter
from harvest.core.permissions import IsManager, is_manager
from harvest.core.utils import create_audit_log
from .filters import OrderFilter
from .models import Order
from .serializers import OrderSerializer, OrderUpdateSerializer
from . import services

logger = logging.getLogger('harvest.orders')


def get_visible_order(request, pk):
    """Customers only see their own orders"""
    order = get_object_or_404(Order.objects.prefetch_related('items'), pk=pk)
    if not is_manager(request.user) and order.customer_id != request.user.id:
        return None
    return order


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """
    GET: orders filtered by ?status, ?shift_name, ?delivery_date,
    ?date_from, ?date_to, ?logistics_center (managers also ?customer).
    POST: create an order with its items for a shift that has not started.
    """
    if request.method == 'GET':
        queryset = Order.objects.select_related('customer').prefetch_related('items')
        if not is_manager(request.user):
            queryset = queryset.filter(customer=request.user)
        filterset = OrderFilter(request.query_params, queryset=queryset)
        return Response(OrderSerializer(filterset.qs, many=True).data)

    data = request.data.copy()
    if not data.get('logistics_center') and request.user.logistics_center_id:
        data['logistics_center'] = request.user.logistics_center_id

    serializer = OrderSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    validated = serializer.validated_data
    services.ensure_shift_open_for_orders(
        validated['logistics_center'], validated['delivery_date'], validated['shift_name'],
    )
    order = serializer.save(customer=request.user)
    logger.info(
        f"Order {order.id} created by {request.user.username} for "
        f"{order.delivery_date} {order.shift_name} ({len(validated['items'])} lines)"
    )
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve an order, or update status/address/notes (managers only)"""
    order = get_visible_order(request, pk)
    if order is None:
        return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    if not is_manager(request.user):
        return Response({'error': 'Only managers can update orders'}, status=status.HTTP_403_FORBIDDEN)

    old_status = order.status
    serializer = OrderUpdateSerializer(order, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = serializer.save()

    if order.status != old_status:
        create_audit_log(
            request=request,
            action='order_status_change',
            model_name='Order',
            object_id=order.id,
            object_reference=f"{order.delivery_date}/{order.shift_name}",
            changes={'from': old_status, 'to': order.status},
        )
    return Response(OrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def orders_for_shift(request):
    """Open orders of ?date=YYYY-MM-DD and ?shift_name= at a center"""
    date = request.query_params.get('date')
    shift_name = request.query_params.get('shift_name')
    if not date or not shift_name:
        return Response(
            {'error': "Query params 'date' (YYYY-MM-DD) and 'shift_name' are required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    center_id = request.query_params.get('logistics_center')
    center = get_object_or_404(LogisticsCenter, pk=center_id) if center_id else request.user.logistics_center
    if center is None:
        return Response(
            {'error': 'logistics_center must be provided either in query or via user context'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    orders = services.list_orders_for_shift(center, date, shift_name)
    return Response({
        'logistics_center': center.id,
        'date': date,
        'shift_name': shift_name,
        'count': len(orders),
        'orders': OrderSerializer(orders, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_packing_plan(request, pk):
    """Preview of the box packing plan for an order"""
    order = get_visible_order(request, pk)
    if order is None:
        return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)
    return Response({'order_id': order.id, 'plan': services.build_order_packing_plan(order)})
