from django.contrib import admin

from .models import Institution, InstitutionRequest


@admin.register(Institution)
class InstitutionAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "user", "contact_number", "created_at")
    search_fields = ("name", "user__email", "user__name")
    readonly_fields = ("created_at", "updated_at")


@admin.register(InstitutionRequest)
class InstitutionRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "institution_name", "email", "status", "decided_by", "decided_at", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("institution_name", "email")
    readonly_fields = ("status", "decided_by", "decided_at", "created_user", "created_at")
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        # Decisions go through the approval workflow only.
        if obj is not None and not obj.is_pending:
            return False
        return super().has_change_permission(request, obj)
