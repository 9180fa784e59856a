from django.urls import path

from .views import ChangePasswordAPIView, MeAPIView, ProfileUpdateAPIView

urlpatterns = [
    path("me/", MeAPIView.as_view(), name="auth-me"),
    path("profile/", ProfileUpdateAPIView.as_view(), name="auth-profile"),
    path("change-password/", ChangePasswordAPIView.as_view(), name="auth-change-password"),
]
