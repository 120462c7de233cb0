import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from harvest.core.permissions import is_manager
from .models import Item, PackageSize, ContainerSize
from .filters import ItemFilter
from .serializers import (
    ItemSerializer, PackageSizeSerializer, ContainerSizeSerializer, ContainerEstimateSerializer,
)
from . import services

logger = logging.getLogger('harvest.catalog')


def manager_only_response(request, what):
    logger.warning(f"User {request.user.username} attempted to change {what}")
    return Response({'error': f'Only managers can change {what}'}, status=status.HTTP_403_FORBIDDEN)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_list_create(request):
    """List items (?search, ?category, ?type, ?active) or create one"""
    if request.method == 'GET':
        queryset = Item.objects.select_related('packing').order_by('name')
        filterset = ItemFilter(request.query_params, queryset=queryset)
        return Response(ItemSerializer(filterset.qs, many=True).data)

    if not is_manager(request.user):
        return manager_only_response(request, 'items')

    serializer = ItemSerializer(data=request.data)
    if serializer.is_valid():
        item = serializer.save()
        logger.info(f"Item '{item.name}' created by {request.user.username}")
        return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def item_detail(request, pk):
    item = get_object_or_404(Item.objects.select_related('packing'), pk=pk)

    if request.method == 'GET':
        return Response(ItemSerializer(item).data)

    if not is_manager(request.user):
        return manager_only_response(request, 'items')

    serializer = ItemSerializer(item, data=request.data, partial=True)
    if serializer.is_valid():
        item = serializer.save()
        return Response(ItemSerializer(item).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def package_size_list_create(request):
    if request.method == 'GET':
        return Response(PackageSizeSerializer(PackageSize.objects.all(), many=True).data)

    if not is_manager(request.user):
        return manager_only_response(request, 'package sizes')

    serializer = PackageSizeSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def container_size_list_create(request):
    if request.method == 'GET':
        return Response(ContainerSizeSerializer(ContainerSize.objects.all(), many=True).data)

    if not is_manager(request.user):
        return manager_only_response(request, 'container sizes')

    serializer = ContainerSizeSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_container_estimate(request, pk):
    """Containers needed to deliver ?quantity_kg of an item"""
    item = get_object_or_404(Item.objects.select_related('packing'), pk=pk)
    try:
        quantity_kg = float(request.query_params.get('quantity_kg', ''))
    except ValueError:
        return Response({'error': 'quantity_kg must be a number'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(services.estimate_item_containers(item, quantity_kg))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def container_estimate(request):
    """Containers needed for a list of {item_id, estimated_kg, committed_kg} lines"""
    serializer = ContainerEstimateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(services.estimate_containers(serializer.validated_data['lines']))
