from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from . import store
from .models import ContentRecord
from .state import ChangeEvent


@receiver(pre_save, sender=ContentRecord)
def remember_tracked_fields(sender, instance, raw=False, **kwargs):
    if raw:
        return
    previous = None
    if not instance._state.adding:
        previous = ContentRecord.objects.filter(pk=instance.pk).first()
    instance._tracked_before = previous.snapshot() if previous else {}


@receiver(post_save, sender=ContentRecord)
def publish_tracked_changes(sender, instance, raw=False, **kwargs):
    if raw:
        return
    before = getattr(instance, "_tracked_before", {})
    after = instance.snapshot()
    if before != after:
        store.publish_change(ChangeEvent(str(instance.pk), before, after))
