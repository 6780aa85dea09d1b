from django.urls import path
from .views import (
    AttachSourceView,
    ContentRecordCreateView,
    ContentRecordDetailView,
    TranscoderNotificationView,
)

urlpatterns = [
    path("records/", ContentRecordCreateView.as_view(), name="record_create"),
    path("records/<uuid:record_id>/", ContentRecordDetailView.as_view(), name="record_detail"),
    path("records/<uuid:record_id>/source/", AttachSourceView.as_view(), name="record_attach_source"),
    path("notifications/transcoder/", TranscoderNotificationView.as_view(), name="transcoder_notification"),
]
