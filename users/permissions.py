from rest_framework.permissions import SAFE_METHODS, BasePermission


def _is_admin(user):
    return bool(user and user.is_authenticated and user.is_admin)


class IsAdminRole(BasePermission):
    message = "Access denied. Admin privileges required."

    def has_permission(self, request, view):
        return _is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    message = "Access denied. Admin privileges required."

    def has_permission(self, request, view):
        return request.method in SAFE_METHODS or _is_admin(request.user)
