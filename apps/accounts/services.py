import logging
from django.contrib.auth import authenticate
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from apps.utils.exceptions import BusinessLogicException

logger = logging.getLogger(__name__)


class AuthService:

    @staticmethod
    def login(email: str, password: str) -> dict:
        """
        Password login for operators. Returns a JWT pair.
        """
        user = authenticate(username=email, password=password)
        if user is None or not user.is_active:
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationFailed("Invalid email or password.")

        user.last_login = timezone.now()
        user.save(update_fields=["last_login"])

        refresh = RefreshToken.for_user(user)
        refresh["role"] = user.role

        return {
            "refresh": str(refresh),
            "access": str(refresh.access_token),
            "user": user,
        }

    @staticmethod
    def logout(refresh_token: str):
        """
        Blacklists the refresh token so it can no longer mint access tokens.
        """
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            raise BusinessLogicException("Invalid or expired refresh token.", code="invalid_token")
