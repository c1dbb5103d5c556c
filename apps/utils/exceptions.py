from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Cart is empty').
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class NotFound(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class PaymentGatewayError(BusinessLogicException):
    """
    The payment gateway could not be reached or refused the request.
    The caller is expected to retry.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "gateway_error"


class NotificationVerificationError(BusinessLogicException):
    """
    A webhook payload failed authenticity checks.
    """
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "invalid_notification"


class InvalidGatewayReference(BusinessLogicException):
    default_code = "invalid_reference"


class NotificationDeliveryError(BusinessLogicException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "delivery_failed"


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    # Handle custom BusinessLogicException (and subclasses)
    if isinstance(exc, BusinessLogicException):
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}")
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code
        )

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
