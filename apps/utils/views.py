# apps/utils/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": "1.0.0",
            "debug": settings.DEBUG,
        })


class GlobalConfigView(APIView):
    """
    Public settings the storefront needs (Snap client key, environment).
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "midtrans_client_key": getattr(settings, "MIDTRANS_CLIENT_KEY", ""),
            "midtrans_is_production": getattr(settings, "MIDTRANS_IS_PRODUCTION", False),
        })
