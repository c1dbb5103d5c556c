import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.utils.throttle import CheckoutRateThrottle
from .serializers import CreateTokenSerializer
from .services import PaymentService

logger = logging.getLogger(__name__)


class CreateTokenView(APIView):
    """
    POST /payment/create-token/ {orderId}
    """
    permission_classes = [AllowAny]
    throttle_classes = [CheckoutRateThrottle]

    def post(self, request):
        serializer = CreateTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        token = PaymentService.create_token(serializer.validated_data['orderId'])
        return Response({
            "token": token.token,
            "snapToken": token.token,
            "redirectUrl": token.redirect_url,
        }, status=status.HTTP_200_OK)


class MidtransNotificationView(APIView):
    """
    Midtrans HTTP notification endpoint.
    Authenticity comes from the payload signature, not from a session.
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = []

    def post(self, request, *args, **kwargs):
        result = PaymentService.process_notification(request.data)
        return Response(result, status=status.HTTP_200_OK)
