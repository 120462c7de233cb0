from rest_framework.permissions import BasePermission


def is_manager(user):
    """Managers (and superusers) may act on other workers' data"""
    return bool(user and user.is_authenticated and getattr(user, 'is_manager', False))


class IsManager(BasePermission):
    message = 'Only managers can perform this action.'

    def has_permission(self, request, view):
        return is_manager(request.user)
