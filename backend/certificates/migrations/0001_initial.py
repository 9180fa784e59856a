import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("institutions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Certificate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("institution_name_snapshot", models.CharField(max_length=255)),
                ("recipient_name_snapshot", models.CharField(max_length=255)),
                ("recipient_email_snapshot", models.CharField(blank=True, db_index=True, default="", max_length=254)),
                ("subject", models.CharField(max_length=255)),
                ("issued_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("time_period", models.CharField(blank=True, default="", max_length=255)),
                ("extra_content", models.CharField(blank=True, default="", max_length=500)),
                ("template", models.CharField(choices=[("classic", "Classic")], default="classic", max_length=30)),
                ("attestation_id", models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ("attested_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "institution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="certificates",
                        to="institutions.institution",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
                "indexes": [
                    models.Index(fields=["institution", "issued_at"], name="cert_institution_issued_idx"),
                    models.Index(fields=["recipient_email_snapshot", "issued_at"], name="cert_recipient_issued_idx"),
                ],
            },
        ),
    ]
