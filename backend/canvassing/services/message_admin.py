"""
Message and cycle administration: staff withdrawals, supervisor quality
review and supervisor status overrides.
"""
import logging

from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from canvassing.exceptions import OperationNotAllowed
from canvassing.models import CanvassingCycle, CycleStatus, CycleStatusLog, Message, QualityCheck, ValidationStatus

logger = logging.getLogger(__name__)


def withdraw_message(message_id: int, staff_id: int) -> dict:
    """
    Let a staff member take back one of their own uploads.

    Only pending (unreviewed) messages can be withdrawn, and only the latest
    stage of a cycle. Withdrawing the last canvassing message removes the
    cycle, and the prospect too when nothing else references it.
    """
    with transaction.atomic():
        message = Message.objects.select_related("cycle__prospect").get(pk=message_id, cycle__staff_id=staff_id)

        if message.validation_status != ValidationStatus.PENDING:
            raise OperationNotAllowed("This message has already been reviewed by a supervisor")
        if Message.objects.filter(cycle_id=message.cycle_id, stage__gt=message.stage).exists():
            raise OperationNotAllowed("A later follow-up exists for this cycle; withdraw that one first")

        cycle = message.cycle
        stage = message.stage
        screenshot_path = message.screenshot_path
        message.delete()

        top_stage = cycle.max_message_stage()
        cycle.current_stage = -1 if top_stage is None else top_stage
        # bypasses save(), so a legacy status string is left as stored
        CanvassingCycle.objects.filter(pk=cycle.pk).update(
            current_stage=cycle.current_stage, updated_at=timezone.now(),
        )

        cycle_deleted = prospect_deleted = False
        if stage == 0 and not cycle.messages.exists():
            prospect = cycle.prospect
            cycle.delete()
            cycle_deleted = True
            if not CanvassingCycle.objects.filter(prospect=prospect).exists():
                prospect.delete()
                prospect_deleted = True

        if screenshot_path:
            transaction.on_commit(lambda: default_storage.delete(screenshot_path))

    logger.info(
        f"Staff {staff_id} withdrew message {message_id} (stage {stage}); "
        f"cycle_deleted={cycle_deleted} prospect_deleted={prospect_deleted}"
    )
    return {
        "message_id": message_id,
        "stage": stage,
        "cycle_deleted": cycle_deleted,
        "prospect_deleted": prospect_deleted,
    }


def review_message(message_id: int, supervisor_id: int, verdict: str, notes: str = None) -> QualityCheck:
    """Record a supervisor's verdict; approved -> valid, rejected -> invalid."""
    verdict = QualityCheck.Verdict(verdict)

    with transaction.atomic():
        message = Message.objects.select_for_update().get(pk=message_id)
        if QualityCheck.objects.filter(message=message).exists():
            raise OperationNotAllowed("This message has already been reviewed")

        check = QualityCheck.objects.create(
            message=message, supervisor_id=supervisor_id, status=verdict, notes=notes,
        )
        if verdict == QualityCheck.Verdict.APPROVED:
            message.validation_status = ValidationStatus.VALID
            message.invalid_reason = None
        else:
            message.validation_status = ValidationStatus.INVALID
            message.invalid_reason = notes
        message.save(update_fields=["validation_status", "invalid_reason", "updated_at"])

    logger.info(f"Supervisor {supervisor_id} {verdict} message {message_id}")
    return check


def update_cycle_status(
    cycle_id: int, status: str, changed_by: int, notes: str = None, failure_reason: str = None,
) -> CanvassingCycle:
    """Supervisor override of a cycle's status, with an audit row."""
    new_status = CycleStatus.normalize(status)

    with transaction.atomic():
        cycle = CanvassingCycle.objects.select_for_update().get(pk=cycle_id)
        old_status = CycleStatus.normalize(cycle.status)

        cycle.status = new_status
        if new_status == CycleStatus.REJECTED:
            cycle.failure_reason = failure_reason or cycle.failure_reason
            cycle.failure_notes = notes
        cycle.save()

        CycleStatusLog.objects.create(
            cycle=cycle, old_status=old_status, new_status=new_status, changed_by=changed_by, notes=notes,
        )

    logger.info(f"Cycle {cycle_id} status {old_status} -> {new_status} by {changed_by}")
    return cycle
