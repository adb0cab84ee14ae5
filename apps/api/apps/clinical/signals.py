"""
Clinical change signals.

Sent after the surrounding transaction commits. Payload values are ids as
strings (no PHI):
  - medical_record_id, patient_id
  - action: created | updated | deleted | control_created | control_reviewed
"""
from django.dispatch import Signal

medical_record_changed = Signal()


# Example listener (push to connected clients, cache invalidation, ...):
#
# from django.dispatch import receiver
# from apps.clinical.signals import medical_record_changed
#
# @receiver(medical_record_changed)
# def on_medical_record_changed(sender, medical_record_id, patient_id, action, **kwargs):
#     notify_clients('medical_records', medical_record_id, action)
