import uuid
from django.db import models

# Fields the encoding pipeline reads or writes; everything else is display data.
TRACKED_FIELDS = ("source_video_uri", "encoding_state", "transcoder_job_id")


class ContentRecord(models.Model):
    class EncodingState(models.TextChoices):
        INIT = "init"
        PROCESSING = "processing"
        COMPLETE = "complete"
        FAILED = "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, blank=True, default="")
    source_video_uri = models.CharField(max_length=2048, blank=True, default="")   # set by the upload step
    # NULL means the pipeline has not seen this record yet
    encoding_state = models.CharField(
        max_length=16, choices=EncodingState.choices, null=True, blank=True, db_index=True
    )
    transcoder_job_id = models.CharField(max_length=128, null=True, blank=True, db_index=True)
    encoding_attempts = models.PositiveSmallIntegerField(default=0)
    encoding_error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or str(self.id)

    def snapshot(self) -> dict:
        """Tracked fields that are set; a key is missing when the field is empty."""
        snap = {}
        for name in TRACKED_FIELDS:
            value = getattr(self, name)
            if value not in (None, ""):
                snap[name] = value
        return snap
