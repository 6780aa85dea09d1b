import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ContentRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("source_video_uri", models.CharField(blank=True, default="", max_length=2048)),
                (
                    "encoding_state",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("init", "Init"),
                            ("processing", "Processing"),
                            ("complete", "Complete"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        max_length=16,
                        null=True,
                    ),
                ),
                ("transcoder_job_id", models.CharField(blank=True, db_index=True, max_length=128, null=True)),
                ("encoding_attempts", models.PositiveSmallIntegerField(default=0)),
                ("encoding_error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
    ]
