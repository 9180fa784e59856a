from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from audit.models import AuditLog
from audit.services import log_event
from core.pagination import CertmintPagination
from users.permissions import IsAdmin, IsInstitution

from . import services
from .models import InstitutionRequest
from .serializers import (
    InstitutionRequestSerializer,
    InstitutionSerializer,
    InstitutionSignupSerializer,
    InstitutionWriteSerializer,
)
from .throttles import SignupIPRateThrottle


class InstitutionSignupAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = (MultiPartParser, FormParser, JSONParser)
    throttle_classes = [SignupIPRateThrottle]

    def post(self, request):
        serializer = InstitutionSignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        services.submit_request(
            institution_name=data["institution_name"],
            email=data["email"],
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            document=data.get("document"),
        )

        return Response(
            {
                "detail": "Request sent to admin. You will be able to login after approval.",
                "redirect_to": "/login",
            },
            status=status.HTTP_201_CREATED,
        )


class InstitutionMeAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsInstitution]
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def get(self, request):
        institution = services.get_issuer_profile(request.user)
        if institution is None:
            return Response(
                {"detail": "Institution profile not found", "code": "NO_ISSUER_PROFILE"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(InstitutionSerializer(institution, context={"request": request}).data)

    def patch(self, request):
        serializer = InstitutionWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        institution = services.update_issuer_profile(request.user, **serializer.validated_data)
        return Response(InstitutionSerializer(institution, context={"request": request}).data)


class InstitutionCreateAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsInstitution]
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def post(self, request):
        serializer = InstitutionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        institution = services.create_issuer_profile(
            request.user,
            name=data.get("name", ""),
            contact_number=data.get("contact_number", ""),
            address=data.get("address", ""),
            location_url=data.get("location_url", ""),
            logo=data.get("logo"),
        )

        return Response(
            InstitutionSerializer(institution, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class InstitutionRequestViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = InstitutionRequestSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]
    pagination_class = CertmintPagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status"]

    def get_queryset(self):
        qs = InstitutionRequest.objects.select_related("decided_by").order_by("-created_at", "-id")
        if self.action == "list" and not self.request.query_params.get("status"):
            return qs.filter(status=InstitutionRequest.Status.PENDING)
        return qs

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        request_obj = services.approve_request(pk, request.user)
        log_event(
            request,
            event_type=AuditLog.EventType.INSTITUTION_REQUEST_APPROVED,
            object_type="InstitutionRequest",
            object_id=request_obj.pk,
            metadata={"email": request_obj.email, "created_user": request_obj.created_user_id},
        )
        return Response(self.get_serializer(request_obj).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, pk=None):
        request_obj = services.reject_request(pk, request.user)
        log_event(
            request,
            event_type=AuditLog.EventType.INSTITUTION_REQUEST_REJECTED,
            object_type="InstitutionRequest",
            object_id=request_obj.pk,
            metadata={"email": request_obj.email},
        )
        return Response(self.get_serializer(request_obj).data, status=status.HTTP_200_OK)
