import django_filters
from django.db.models import Q

from certificates.models import Certificate
from institutions.models import Institution
from users.models import StudentProfile, User


def apply_search(queryset, fields, value):
    term = (value or "").strip()
    if not term:
        return queryset
    query = Q()
    for field in fields:
        query |= Q(**{f"{field}__icontains": term})
    return queryset.filter(query)


class UserFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_q")
    role = django_filters.CharFilter(method="filter_role")

    class Meta:
        model = User
        fields: list[str] = []

    def filter_q(self, queryset, name, value):
        return apply_search(queryset, ["name", "email"], value)

    def filter_role(self, queryset, name, value):
        role = (value or "").strip().upper()
        if not role:
            return queryset
        if role not in User.Role.values:
            return queryset.none()
        return queryset.filter(role=role)


class InstitutionFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_q")

    class Meta:
        model = Institution
        fields: list[str] = []

    def filter_q(self, queryset, name, value):
        return apply_search(queryset, ["name", "user__name", "user__email"], value)


class StudentProfileFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_q")

    class Meta:
        model = StudentProfile
        fields: list[str] = []

    def filter_q(self, queryset, name, value):
        return apply_search(queryset, ["user__name", "user__email"], value)


CERTIFICATE_SEARCH_FIELDS = [
    "subject",
    "recipient_name_snapshot",
    "recipient_email_snapshot",
    "institution_name_snapshot",
]


class CertificateFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_q")
    institution = django_filters.NumberFilter(field_name="institution_id")
    issued_from = django_filters.DateFilter(field_name="issued_at", lookup_expr="date__gte")
    issued_to = django_filters.DateFilter(field_name="issued_at", lookup_expr="date__lte")

    class Meta:
        model = Certificate
        fields: list[str] = []

    def filter_q(self, queryset, name, value):
        return apply_search(queryset, CERTIFICATE_SEARCH_FIELDS, value)
