from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from institutions.throttles import SignupIPRateThrottle
from users import services as user_services
from users.models import User
from users.serializers import LegacySignupSerializer, LoginSerializer, StudentSignupSerializer, UserSerializer

from .throttles import LoginEmailRateThrottle, LoginIPRateThrottle


def issue_tokens(user: User) -> dict:
    refresh = RefreshToken.for_user(user)
    # Copied into the access token as well.
    refresh["role"] = user.role
    refresh["email"] = user.email
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


class LoginAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [LoginIPRateThrottle, LoginEmailRateThrottle]

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = user_services.authenticate_account(
            serializer.validated_data["email"],
            serializer.validated_data["password"],
        )
        payload = issue_tokens(user)
        payload["user"] = UserSerializer(user).data
        return Response(payload, status=status.HTTP_200_OK)


class StudentSignupAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [SignupIPRateThrottle]

    def post(self, request, *args, **kwargs):
        serializer = StudentSignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = user_services.create_account(
            name=data["name"],
            email=data["email"],
            password=data["password"],
            role=User.Role.STUDENT,
            date_of_birth=data.get("date_of_birth"),
        )
        return Response(
            {"detail": "Account created successfully", "user": UserSerializer(user).data},
            status=status.HTTP_201_CREATED,
        )


class LegacySignupAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [SignupIPRateThrottle]

    def post(self, request, *args, **kwargs):
        serializer = LegacySignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = user_services.create_account(
            name=data["name"],
            email=data["email"],
            password=data["password"],
            role=data["role"],
        )
        return Response(
            {"detail": "Account created successfully", "user": UserSerializer(user).data},
            status=status.HTTP_201_CREATED,
        )
