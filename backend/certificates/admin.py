from django.contrib import admin

from .models import Certificate


@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "subject",
        "recipient_name_snapshot",
        "recipient_email_snapshot",
        "institution_name_snapshot",
        "issued_at",
        "attestation_id",
    )
    list_filter = ("template", "issued_at")
    search_fields = (
        "subject",
        "recipient_name_snapshot",
        "recipient_email_snapshot",
        "institution_name_snapshot",
        "attestation_id",
    )
    ordering = ("-issued_at",)

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return ()
        return [f.name for f in self.model._meta.fields]

    def has_delete_permission(self, request, obj=None):
        return False
