from django.urls import path
from .views import (
    item_list_create, item_detail, package_size_list_create,
    container_size_list_create, item_container_estimate, container_estimate,
)

urlpatterns = [
    path('items/', item_list_create, name='item-list-create'),
    path('items/<int:pk>/', item_detail, name='item-detail'),
    path('items/<int:pk>/container-estimate/', item_container_estimate, name='item-container-estimate'),
    path('package-sizes/', package_size_list_create, name='package-size-list-create'),
    path('container-sizes/', container_size_list_create, name='container-size-list-create'),
    path('packing/containers/estimate/', container_estimate, name='container-estimate'),
]
