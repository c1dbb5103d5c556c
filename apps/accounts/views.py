from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from apps.utils.throttle import BurstRateThrottle

from .services import AuthService
from .serializers import LoginSerializer, LogoutSerializer, UserSerializer


class LoginView(APIView):
    """
    Operator login with email + password.
    Bad credentials are 401 (JWT authenticator supplies the header).
    """
    permission_classes = [AllowAny]
    throttle_classes = [BurstRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
        )

        return Response({
            "refresh": result['refresh'],
            "access": result['access'],
            "user": UserSerializer(result['user']).data,
        }, status=status.HTTP_200_OK)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.logout(serializer.validated_data['refresh'])
        return Response({"message": "Logged out successfully"}, status=status.HTTP_200_OK)


class MeView(APIView):
    """
    Profile of the logged-in operator, with a fresh balance.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        request.user.refresh_from_db(fields=['balance'])
        return Response(UserSerializer(request.user).data)
