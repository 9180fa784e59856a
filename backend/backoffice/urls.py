from django.urls import include, path
from rest_framework.routers import DefaultRouter

from institutions.views import InstitutionRequestViewSet

from .views import (
    AdminCertificateViewSet,
    AdminInstitutionViewSet,
    AdminStatsAPIView,
    AdminStudentViewSet,
    AdminUserViewSet,
)

router = DefaultRouter()
router.register(r"users", AdminUserViewSet, basename="admin-user")
router.register(r"institutions", AdminInstitutionViewSet, basename="admin-institution")
router.register(r"students", AdminStudentViewSet, basename="admin-student")
router.register(r"certificates", AdminCertificateViewSet, basename="admin-certificate")
router.register(r"institution-requests", InstitutionRequestViewSet, basename="admin-institution-request")

urlpatterns = [
    path("stats/", AdminStatsAPIView.as_view(), name="admin-stats"),
    path("", include(router.urls)),
]
