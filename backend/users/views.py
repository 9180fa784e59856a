from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .serializers import ChangePasswordSerializer, ProfileUpdateSerializer, UserSerializer


class MeAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class ProfileUpdateAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = services.update_profile(
            request.user.pk,
            name=serializer.validated_data.get("name"),
            email=serializer.validated_data.get("email"),
        )

        return Response({"detail": "Profile updated", "user": UserSerializer(user).data})


class ChangePasswordAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={"user": request.user})
        serializer.is_valid(raise_exception=True)

        services.change_password(
            request.user.pk,
            current_password=serializer.validated_data["current_password"],
            new_password=serializer.validated_data["new_password"],
        )
        return Response({"detail": "Password changed successfully"}, status=status.HTTP_200_OK)
