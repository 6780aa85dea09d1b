from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from encoding import store
from encoding.models import ContentRecord

State = ContentRecord.EncodingState


class Command(BaseCommand):
    help = "Send finished or failed records back to init so they are encoded again."

    def add_arguments(self, parser):
        parser.add_argument("record_ids", nargs="+")
        parser.add_argument(
            "--force",
            action="store_true",
            help="Also reset records that are still processing (the running job is abandoned).",
        )

    def handle(self, *args, record_ids, force=False, **options):
        allowed = (State.COMPLETE, State.FAILED, State.PROCESSING) if force else (State.COMPLETE, State.FAILED)
        failures = 0
        for record_id in record_ids:
            try:
                record = store.get_record(record_id)
            except ValidationError:
                record = None
            if record is None:
                self.stderr.write(f"{record_id}: not found")
                failures += 1
                continue
            if not record.source_video_uri:
                self.stderr.write(f"{record_id}: no source video attached")
                failures += 1
                continue
            reset = store.update_record(
                record_id,
                {
                    "encoding_state": State.INIT,
                    "transcoder_job_id": None,
                    "encoding_error": "",
                    "encoding_attempts": 0,
                },
                expected_state=allowed,
            )
            if reset:
                self.stdout.write(f"{record_id}: {record.encoding_state} -> init")
            else:
                self.stderr.write(f"{record_id}: state {record.encoding_state} cannot be reset")
                failures += 1
        if failures:
            raise CommandError(f"{failures} record(s) not reset")
