"""
Account views.
"""
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.core.mixins import StandardResponseMixin
from apps.core.permissions import IsAuthenticatedAndActive
from .serializers import UserDetailSerializer


class CustomTokenObtainPairView(TokenObtainPairView):
    """JWT login view wrapping the token pair in the standard envelope."""

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)

        if response.status_code == 200:
            return Response({
                'success': True,
                'message': '登入成功',
                'data': response.data
            })

        return response


class MeView(StandardResponseMixin, APIView):
    """Current user info."""
    permission_classes = [IsAuthenticatedAndActive]

    def get(self, request):
        serializer = UserDetailSerializer(request.user)
        return self.success_response(data=serializer.data)
