"""
Workflow change notifications.

workflow_changed is sent after commit whenever a workflow is created or
changes status. Payload: workflow_id, patient_id, status, previous_status
(None on creation).

Example listener:

    @receiver(workflow_changed)
    def refresh_waiting_room(sender, workflow_id, status, **kwargs):
        ...
"""
from django.dispatch import Signal

workflow_changed = Signal()
