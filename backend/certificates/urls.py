from django.urls import path

from .views import CertificateListCreateAPIView, PublicCertificateAPIView, RecipientCertificatesAPIView

urlpatterns = [
    path("", CertificateListCreateAPIView.as_view(), name="certificates"),
    path("student/", RecipientCertificatesAPIView.as_view(), name="certificates-recipient"),
    path("<uuid:pk>/", PublicCertificateAPIView.as_view(), name="certificate-public"),
]
