import hmac
import json
import logging

import requests
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from rest_framework import status, views
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .aws import confirm_subscription
from .errors import NotificationSignatureError
from .models import ContentRecord
from .parsers import PlainTextJSONParser
from .reconciler import JobNotification
from .sns import verify_message
from .tasks import reconcile_job_completion

from .serializers import (
    AttachSourceSerializer,
    ContentRecordSerializer,
    JobNotificationSerializer,
    SnsEnvelopeSerializer,
)

logger = logging.getLogger(__name__)


class ContentRecordCreateView(views.APIView):
    """
    Creates a ContentRecord. When source_video_uri is given the record enters
    the encoding pipeline right away.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = ContentRecordSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = ser.save()
        return Response(ContentRecordSerializer(record).data, status=status.HTTP_201_CREATED)


class ContentRecordDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, record_id):
        try:
            record = ContentRecord.objects.get(pk=record_id)
        except ContentRecord.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)
        return Response(ContentRecordSerializer(record).data)


class AttachSourceView(views.APIView):
    """
    The upload step's write: attaches the uploaded source video to a record.
    A source can be attached once; re-encoding goes through reset_encoding.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, record_id):
        ser = AttachSourceSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            record = ContentRecord.objects.get(pk=record_id)
        except ContentRecord.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)

        if record.source_video_uri:
            return Response({"detail": "Source video already attached."}, status=409)

        record.source_video_uri = ser.validated_data["source_video_uri"]
        record.save(update_fields=["source_video_uri", "updated_at"])
        return Response(ContentRecordSerializer(record).data, status=status.HTTP_202_ACCEPTED)


class TranscoderNotificationView(views.APIView):
    """
    Receives MediaConvert job state changes, either as SNS HTTPS deliveries
    (EventBridge rule -> SNS topic -> here) or as bare {jobId, status}
    bodies from a forwarding function. Reconciliation runs on a worker.

    SNS deliveries must carry a valid SNS signature. Bare bodies must carry
    ENCODING_NOTIFICATION_SECRET in the X-Notification-Token header.
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [JSONParser, PlainTextJSONParser]

    def post(self, request):
        data = request.data
        if isinstance(data, dict) and "Type" in data:
            return self._handle_sns(data)

        secret = settings.ENCODING_NOTIFICATION_SECRET
        token = request.headers.get("X-Notification-Token", "")
        if not secret or not hmac.compare_digest(token.encode(), secret.encode()):
            logger.warning("Rejected unauthenticated notification from %s", request.META.get("REMOTE_ADDR"))
            return Response({"detail": "Missing or invalid notification token."}, status=403)

        ser = JobNotificationSerializer(data=data)
        ser.is_valid(raise_exception=True)
        notification = JobNotification.from_event(ser.validated_data)
        self._enqueue(notification)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _handle_sns(self, data):
        ser = SnsEnvelopeSerializer(data=data)
        ser.is_valid(raise_exception=True)
        envelope = ser.validated_data

        if envelope["TopicArn"] != settings.ENCODING_NOTIFICATION_TOPIC_ARN:
            logger.warning("Rejected SNS message %s from topic %s", envelope["MessageId"], envelope["TopicArn"])
            return Response({"detail": "Unexpected topic."}, status=403)

        try:
            # the raw body: the serializer trims whitespace the signature covers
            verify_message(data)
        except NotificationSignatureError as e:
            logger.warning("Rejected SNS message %s: %s", envelope["MessageId"], e)
            return Response({"detail": "Invalid SNS signature."}, status=403)
        except requests.RequestException:
            logger.exception("Could not fetch signing certificate for SNS message %s", envelope["MessageId"])
            return Response({"detail": "Signing certificate unavailable."}, status=503)

        kind = envelope["Type"]
        if kind == "SubscriptionConfirmation":
            try:
                arn = confirm_subscription(envelope["TopicArn"], envelope["Token"])
            except (ClientError, BotoCoreError):
                logger.exception("Could not confirm SNS subscription to %s", envelope["TopicArn"])
                return Response({"detail": "Subscription confirmation failed."}, status=503)
            logger.info("Confirmed SNS subscription %s", arn)
            return Response(status=status.HTTP_204_NO_CONTENT)
        if kind == "UnsubscribeConfirmation":
            logger.warning("Endpoint unsubscribed from %s", envelope["TopicArn"])
            return Response(status=status.HTTP_204_NO_CONTENT)

        try:
            notification = JobNotification.from_event(json.loads(envelope["Message"]))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            logger.warning("Malformed SNS message %s: %s", envelope["MessageId"], e)
            return Response({"detail": str(e)}, status=400)

        self._enqueue(notification)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _enqueue(self, notification: JobNotification):
        logger.info("Job %s reported %s", notification.job_id, notification.status)
        reconcile_job_completion.delay(notification.job_id, notification.status, notification.error_message)
