"""
Mixins for views and serializers.
"""
from rest_framework import status
from rest_framework.response import Response


class StandardResponseMixin:
    """Mixin for standard API responses."""

    def success_response(self, data=None, message='操作成功', status_code=status.HTTP_200_OK):
        """Return a success response."""
        response_data = {
            'success': True,
            'message': message,
        }
        if data is not None:
            response_data['data'] = data
        return Response(response_data, status=status_code)

    def error_response(self, message='操作失敗', errors=None, status_code=status.HTTP_400_BAD_REQUEST, data=None):
        """Return an error response."""
        response_data = {
            'success': False,
            'message': message,
        }
        if errors is not None:
            response_data['errors'] = errors
        if data is not None:
            response_data['data'] = data
        return Response(response_data, status=status_code)

    def created_response(self, data=None, message='建立成功'):
        """Return a created response."""
        return self.success_response(data, message, status.HTTP_201_CREATED)


class MultiSerializerMixin:
    """
    Mixin that allows different serializers for different actions.
    Usage:
        serializer_classes = {
            'list': ListSerializer,
            'retrieve': DetailSerializer,
            'create': CreateSerializer,
        }
    """
    serializer_classes = {}

    def get_serializer_class(self):
        """Return serializer class based on action."""
        return self.serializer_classes.get(
            self.action,
            super().get_serializer_class()
        )
