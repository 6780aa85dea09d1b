from django.conf import settings
from rest_framework import serializers

from .jobs import manifest_uri
from .models import ContentRecord
from .renditions import get_ladder


class ContentRecordSerializer(serializers.ModelSerializer):
    manifest_uri = serializers.SerializerMethodField()

    class Meta:
        model = ContentRecord
        fields = [
            "id",
            "name",
            "source_video_uri",
            "encoding_state",
            "transcoder_job_id",
            "encoding_attempts",
            "encoding_error",
            "manifest_uri",     # only once encoding is complete
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "encoding_state",
            "transcoder_job_id",
            "encoding_attempts",
            "encoding_error",
        ]

    def get_manifest_uri(self, obj):
        if obj.encoding_state != ContentRecord.EncodingState.COMPLETE:
            return None
        return manifest_uri(settings.ENCODING_DESTINATION_PREFIX, obj.pk, get_ladder())


class AttachSourceSerializer(serializers.Serializer):
    source_video_uri = serializers.CharField(max_length=2048)


class SnsEnvelopeSerializer(serializers.Serializer):
    """The fields of an SNS HTTP(S) delivery that we rely on."""
    TYPES = ("SubscriptionConfirmation", "Notification", "UnsubscribeConfirmation")

    Type = serializers.ChoiceField(choices=TYPES)
    MessageId = serializers.CharField()
    TopicArn = serializers.CharField()
    Message = serializers.CharField(allow_blank=True)
    Timestamp = serializers.CharField()
    Subject = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    Token = serializers.CharField(required=False)
    SubscribeURL = serializers.URLField(required=False)
    # checked against the raw body by sns.verify_message
    SignatureVersion = serializers.CharField(required=False)
    Signature = serializers.CharField(required=False)
    SigningCertURL = serializers.CharField(required=False)

    def validate(self, attrs):
        if attrs["Type"] == "SubscriptionConfirmation" and not attrs.get("Token"):
            raise serializers.ValidationError("SubscriptionConfirmation without Token")
        return attrs


class JobNotificationSerializer(serializers.Serializer):
    jobId = serializers.CharField()
    status = serializers.CharField()
    errorMessage = serializers.CharField(required=False, allow_blank=True, default="")
