"""
Encoding lifecycle of a ContentRecord.

    absent --(source_video_uri added)--> init
    init --(encoding_state became init, or source rewritten)--> processing
    processing --(job COMPLETE)--> complete
    init | processing --(submission or job failed)--> failed

Record change events are matched against TRANSITIONS by
(current state, fields that changed). The processing -> complete/failed
edges are driven by completion notifications, see reconciler.py.
"""
from dataclasses import dataclass, field

from .models import ContentRecord

State = ContentRecord.EncodingState
ABSENT = None


@dataclass(frozen=True)
class ChangeEvent:
    """Before/after snapshot of the tracked fields for a single write."""
    record_id: str
    fields_before: dict = field(default_factory=dict)
    fields_after: dict = field(default_factory=dict)

    @property
    def added_fields(self) -> frozenset:
        return frozenset(self.fields_after) - frozenset(self.fields_before)

    @property
    def changed_fields(self) -> frozenset:
        keys = frozenset(self.fields_before) | frozenset(self.fields_after)
        return frozenset(k for k in keys if self.fields_before.get(k) != self.fields_after.get(k))

    @property
    def state(self):
        return self.fields_after.get("encoding_state", ABSENT)

    def as_payload(self) -> dict:
        return {
            "record_id": str(self.record_id),
            "fields_before": dict(self.fields_before),
            "fields_after": dict(self.fields_after),
        }


@dataclass(frozen=True)
class Transition:
    name: str
    source: str | None
    target: str
    triggers: frozenset
    added_only: bool = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.state != self.source:
            return False
        fields = event.added_fields if self.added_only else event.changed_fields
        return bool(fields & self.triggers)


QUEUE = Transition(
    "queue", ABSENT, State.INIT,
    triggers=frozenset({"source_video_uri"}), added_only=True,
)
SUBMIT = Transition(
    "submit", State.INIT, State.PROCESSING,
    triggers=frozenset({"encoding_state", "source_video_uri"}),
)

TRANSITIONS = (QUEUE, SUBMIT)

TERMINAL_STATES = frozenset({State.COMPLETE, State.FAILED})


def decide(event: ChangeEvent) -> Transition | None:
    """The transition a change event triggers, or None."""
    for transition in TRANSITIONS:
        if not transition.matches(event):
            continue
        if transition is SUBMIT and event.fields_after.get("transcoder_job_id"):
            # already submitted; re-delivered event
            return None
        return transition
    return None
