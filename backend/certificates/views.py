from __future__ import annotations

from rest_framework import permissions, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import IsInstitution

from . import services
from .models import Certificate
from .serializers import CertificateSerializer, IssueCertificateSerializer, PublicCertificateSerializer
from .throttles import PublicCertificateRateThrottle


class CertificateListCreateAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsInstitution]

    def get(self, request):
        certificates = services.list_by_issuer(request.user)
        return Response({"certificates": CertificateSerializer(certificates, many=True).data})

    def post(self, request):
        serializer = IssueCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.issue_certificate(
            issuer=request.user,
            recipient_name=data["recipient_name"],
            recipient_email=data.get("recipient_email", ""),
            subject=data["subject"],
            time_period=data.get("time_period", ""),
            extra_content=data.get("extra_content", ""),
            template=data.get("template") or Certificate.Template.CLASSIC,
        )

        detail = "Certificate created successfully"
        if result.degraded:
            detail = "Certificate created with pending steps"

        return Response(
            {
                "detail": detail,
                "status": result.status,
                "certificate": CertificateSerializer(result.certificate).data,
                "notification_id": result.notification.pk if result.notification else None,
                "failures": [f.as_dict() for f in result.failures],
            },
            status=status.HTTP_201_CREATED,
        )


class RecipientCertificatesAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        certificates = services.list_by_recipient_email(request.user.email)
        return Response({"certificates": CertificateSerializer(certificates, many=True).data})


class PublicCertificateAPIView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [PublicCertificateRateThrottle]

    def get(self, request, pk):
        certificate = services.get_certificate(pk)
        return Response(PublicCertificateSerializer(certificate).data)
