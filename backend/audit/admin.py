from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
	list_display = ("created_at", "event_type", "actor_email", "object_type", "object_id")
	list_filter = ("event_type", "object_type")
	search_fields = ("actor_email", "object_type", "object_id")
	readonly_fields = (
		"created_at",
		"actor",
		"actor_email",
		"event_type",
		"object_type",
		"object_id",
		"path",
		"method",
		"ip_address",
		"metadata",
	)

	def has_add_permission(self, request):
		return False

	def has_change_permission(self, request, obj=None):
		return False
