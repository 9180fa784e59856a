"""URL configuration for certmint_backend project."""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenRefreshView

from institutions.views import InstitutionSignupAPIView

from .auth_views import LegacySignupAPIView, LoginAPIView, StudentSignupAPIView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/signup/", LegacySignupAPIView.as_view(), name="auth_signup"),
    path("api/auth/signup/student/", StudentSignupAPIView.as_view(), name="auth_signup_student"),
    path("api/auth/signup/institution/", InstitutionSignupAPIView.as_view(), name="auth_signup_institution"),
    path("api/auth/login/", LoginAPIView.as_view(), name="auth_login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth_refresh"),
    path("api/auth/", include("users.urls")),
    path("api/institution/", include("institutions.urls")),
    path("api/certificates/", include("certificates.urls")),
    path("api/admin/", include("backoffice.urls")),
    path("api/", include("notifications.urls")),
    path("api/", include("audit.urls")),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
