from django.contrib import admin

from .models import ContentRecord


@admin.register(ContentRecord)
class ContentRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "encoding_state", "transcoder_job_id", "encoding_attempts", "updated_at")
    list_filter = ("encoding_state",)
    search_fields = ("id", "name", "transcoder_job_id")
    readonly_fields = ("encoding_state", "transcoder_job_id", "encoding_attempts", "encoding_error")
