import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

	initial = True

	dependencies = [
		migrations.swappable_dependency(settings.AUTH_USER_MODEL),
	]

	operations = [
		migrations.CreateModel(
			name="AuditLog",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("actor_email", models.CharField(blank=True, default="", max_length=254)),
				(
					"event_type",
					models.CharField(
						choices=[
							("INSTITUTION_REQUEST_APPROVED", "Institution request approved"),
							("INSTITUTION_REQUEST_REJECTED", "Institution request rejected"),
							("USER_ROLE_CHANGED", "User role changed"),
							("USER_BANNED", "User banned"),
							("USER_UNBANNED", "User unbanned"),
							("USER_DELETED", "User deleted"),
						],
						max_length=80,
					),
				),
				("object_type", models.CharField(blank=True, default="", max_length=80)),
				("object_id", models.CharField(blank=True, default="", max_length=80)),
				("path", models.CharField(blank=True, default="", max_length=300)),
				("method", models.CharField(blank=True, default="", max_length=10)),
				("ip_address", models.CharField(blank=True, default="", max_length=64)),
				("metadata", models.JSONField(blank=True, default=dict)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				(
					"actor",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="audit_logs",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"ordering": ["-created_at", "-id"],
				"indexes": [
					models.Index(fields=["event_type", "created_at"], name="audit_event_created_idx"),
					models.Index(fields=["object_type", "object_id", "created_at"], name="audit_object_created_idx"),
				],
			},
		),
	]
