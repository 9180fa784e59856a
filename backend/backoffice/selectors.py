from __future__ import annotations

from django.db.models import Count

from certificates.models import Certificate
from institutions.models import Institution, InstitutionRequest
from users.models import StudentProfile, User

from .filters import CERTIFICATE_SEARCH_FIELDS, apply_search

# Upper bound on certificates returned by the issuer drill-down.
DRILLDOWN_CERTIFICATE_LIMIT = 1000


def users_qs():
    return User.objects.all().order_by("-date_joined", "-id")


def institutions_qs():
    return (
        Institution.objects.select_related("user")
        .annotate(certificates_count=Count("certificates"))
        .order_by("-created_at", "-id")
    )


def students_qs():
    return StudentProfile.objects.select_related("user").order_by("-created_at", "-id")


def certificates_qs():
    return Certificate.objects.select_related("institution").order_by("-issued_at")


def institution_certificates(institution: Institution, cert_q: str = ""):
    qs = Certificate.objects.filter(institution=institution).order_by("-issued_at")
    return apply_search(qs, CERTIFICATE_SEARCH_FIELDS, cert_q)[:DRILLDOWN_CERTIFICATE_LIMIT]


def platform_stats() -> dict:
    by_role = {role: 0 for role in User.Role.values}
    for row in User.objects.order_by().values("role").annotate(total=Count("id")):
        by_role[row["role"]] = row["total"]

    return {
        "total_accounts": sum(by_role.values()),
        "total_by_role": by_role,
        "total_certificates": Certificate.objects.count(),
        "pending_onboarding_count": InstitutionRequest.objects.filter(
            status=InstitutionRequest.Status.PENDING
        ).count(),
        "unattested_certificates": Certificate.objects.filter(attestation_id__isnull=True).count(),
    }
