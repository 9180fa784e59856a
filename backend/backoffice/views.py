from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from audit.models import AuditLog
from audit.services import log_event
from certificates.serializers import CertificateSerializer
from core.pagination import CertmintPagination
from users import services as user_services
from users.permissions import IsAdmin
from users.serializers import RoleUpdateSerializer

from . import selectors
from .filters import CertificateFilter, InstitutionFilter, StudentProfileFilter, UserFilter
from .serializers import (
    AdminCertificateSerializer,
    AdminInstitutionSerializer,
    AdminStudentSerializer,
    AdminUserSerializer,
)


class AdminViewMixin:
    permission_classes = [permissions.IsAuthenticated, IsAdmin]
    pagination_class = CertmintPagination
    filter_backends = [DjangoFilterBackend]


class AdminUserViewSet(AdminViewMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminUserSerializer
    filterset_class = UserFilter

    def get_queryset(self):
        return selectors.users_qs()

    def partial_update(self, request, pk=None):
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = user_services.set_role(pk, serializer.validated_data["role"])
        log_event(
            request,
            event_type=AuditLog.EventType.USER_ROLE_CHANGED,
            object_type="User",
            object_id=user.pk,
            metadata={"role": user.role},
        )
        return Response(AdminUserSerializer(user).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        user_services.delete_account(pk)
        log_event(request, event_type=AuditLog.EventType.USER_DELETED, object_type="User", object_id=pk)
        return Response({"detail": "User deleted"}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="ban")
    def ban(self, request, pk=None):
        user = user_services.set_banned(pk, True)
        log_event(request, event_type=AuditLog.EventType.USER_BANNED, object_type="User", object_id=user.pk)
        return Response(AdminUserSerializer(user).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="unban")
    def unban(self, request, pk=None):
        user = user_services.set_banned(pk, False)
        log_event(request, event_type=AuditLog.EventType.USER_UNBANNED, object_type="User", object_id=user.pk)
        return Response(AdminUserSerializer(user).data, status=status.HTTP_200_OK)


class AdminInstitutionViewSet(AdminViewMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = AdminInstitutionSerializer
    filterset_class = InstitutionFilter

    def get_queryset(self):
        return selectors.institutions_qs()

    def retrieve(self, request, pk=None):
        institution = self.get_object()
        certificates = selectors.institution_certificates(institution, request.query_params.get("cert_q", ""))
        return Response(
            {
                "institution": AdminInstitutionSerializer(institution, context={"request": request}).data,
                "certificates": CertificateSerializer(certificates, many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class AdminStudentViewSet(AdminViewMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminStudentSerializer
    filterset_class = StudentProfileFilter

    def get_queryset(self):
        return selectors.students_qs()


class AdminCertificateViewSet(AdminViewMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminCertificateSerializer
    filterset_class = CertificateFilter

    def get_queryset(self):
        return selectors.certificates_qs()


class AdminStatsAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        return Response(selectors.platform_stats(), status=status.HTTP_200_OK)
