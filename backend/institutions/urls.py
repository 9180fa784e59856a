from django.urls import path

from .views import InstitutionCreateAPIView, InstitutionMeAPIView

urlpatterns = [
    path("me/", InstitutionMeAPIView.as_view(), name="institution-me"),
    path("create/", InstitutionCreateAPIView.as_view(), name="institution-create"),
]
