import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from canvassing.exceptions import OperationNotAllowed
from canvassing.models import CanvassingCycle, CycleStatus, CycleStatusLog, Message, Prospect, QualityCheck
from canvassing.services.message_admin import review_message, update_cycle_status, withdraw_message

STAFF = 7
SUPERVISOR = 900


def _with_stored_file(message):
    default_storage.save(message.screenshot_path, ContentFile(b"fake-png"))
    return message


@pytest.mark.django_db
class TestWithdraw:

    def test_withdrawing_canvassing_removes_cycle_and_prospect(
        self, cycle_factory, django_capture_on_commit_callbacks
    ):
        cycle = cycle_factory("kopi_senja88")
        message = _with_stored_file(cycle.messages.get())

        with django_capture_on_commit_callbacks(execute=True):
            result = withdraw_message(message.pk, STAFF)

        assert result == {"message_id": message.pk, "stage": 0, "cycle_deleted": True, "prospect_deleted": True}
        assert not Message.objects.exists()
        assert not CanvassingCycle.objects.exists()
        assert not Prospect.objects.exists()
        assert not default_storage.exists(message.screenshot_path)

    def test_prospect_kept_while_other_cycles_exist(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88")
        cycle_factory("kopi_senja88", staff_id=8)

        result = withdraw_message(cycle.messages.get().pk, STAFF)

        assert result["cycle_deleted"] is True
        assert result["prospect_deleted"] is False
        assert Prospect.objects.filter(handle="kopi_senja88").exists()

    def test_withdrawing_latest_follow_up_rewinds_stage(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88", reached_stage=2)

        result = withdraw_message(cycle.messages.get(stage=2).pk, STAFF)

        assert result["cycle_deleted"] is False
        cycle.refresh_from_db()
        assert cycle.current_stage == 1

    def test_withdraw_on_cycle_with_legacy_status(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88", reached_stage=1)
        CanvassingCycle.objects.filter(pk=cycle.pk).update(status="paused")

        result = withdraw_message(cycle.messages.get(stage=1).pk, STAFF)

        assert result["cycle_deleted"] is False
        cycle.refresh_from_db()
        assert cycle.current_stage == 0
        assert cycle.status == "paused"

    def test_earlier_stage_cannot_be_withdrawn(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88", reached_stage=1)

        with pytest.raises(OperationNotAllowed):
            withdraw_message(cycle.messages.get(stage=0).pk, STAFF)
        assert cycle.messages.count() == 2

    def test_reviewed_message_cannot_be_withdrawn(self, cycle_factory):
        message = cycle_factory("kopi_senja88").messages.get()
        review_message(message.pk, SUPERVISOR, "approved")

        with pytest.raises(OperationNotAllowed):
            withdraw_message(message.pk, STAFF)

    def test_only_own_messages(self, cycle_factory):
        message = cycle_factory("kopi_senja88", staff_id=8).messages.get()

        with pytest.raises(Message.DoesNotExist):
            withdraw_message(message.pk, STAFF)


@pytest.mark.django_db
class TestReview:

    def test_approve(self, cycle_factory):
        message = cycle_factory("kopi_senja88").messages.get()

        check = review_message(message.pk, SUPERVISOR, "approved", notes="ok")

        message.refresh_from_db()
        assert check.status == QualityCheck.Verdict.APPROVED
        assert message.validation_status == "valid"
        assert message.invalid_reason is None

    def test_reject_keeps_reason(self, cycle_factory):
        message = cycle_factory("kopi_senja88").messages.get()

        review_message(message.pk, SUPERVISOR, "rejected", notes="Screenshot is cropped")

        message.refresh_from_db()
        assert message.validation_status == "invalid"
        assert message.invalid_reason == "Screenshot is cropped"

    def test_single_review_per_message(self, cycle_factory):
        message = cycle_factory("kopi_senja88").messages.get()
        review_message(message.pk, SUPERVISOR, "approved")

        with pytest.raises(OperationNotAllowed):
            review_message(message.pk, SUPERVISOR + 1, "rejected")
        assert QualityCheck.objects.count() == 1

    def test_unknown_verdict(self, cycle_factory):
        message = cycle_factory("kopi_senja88").messages.get()
        with pytest.raises(ValueError):
            review_message(message.pk, SUPERVISOR, "maybe")


@pytest.mark.django_db
class TestStatusOverride:

    def test_override_is_logged(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88")

        update_cycle_status(cycle.pk, "Berhasil", changed_by=SUPERVISOR, notes="Signed up at the booth")

        cycle.refresh_from_db()
        assert cycle.status == CycleStatus.CONVERTED
        log = CycleStatusLog.objects.get(cycle=cycle)
        assert (log.old_status, log.new_status, log.changed_by) == ("active", "converted", SUPERVISOR)

    def test_rejection_records_reason(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88")

        update_cycle_status(
            cycle.pk, "gagal", changed_by=SUPERVISOR, notes="Closed the shop", failure_reason="Out of business",
        )

        cycle.refresh_from_db()
        assert cycle.status == CycleStatus.REJECTED
        assert cycle.failure_reason == "Out of business"
        assert cycle.failure_notes == "Closed the shop"

    def test_unknown_status(self, cycle_factory):
        cycle = cycle_factory("kopi_senja88")
        with pytest.raises(ValueError):
            update_cycle_status(cycle.pk, "paused", changed_by=SUPERVISOR)
        assert not CycleStatusLog.objects.exists()
