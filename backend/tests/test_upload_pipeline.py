"""
End-to-end tests for the screenshot upload pipeline, with OCR stubbed out.
"""
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from canvassing.exceptions import UploadPipelineError
from canvassing.models import CanvassingCycle, CycleStatus, CycleStatusLog, Message, Prospect
from canvassing.services.upload_pipeline import REFUSED_FAILURE_REASON, process_upload

STAFF = 7


def _stored_files(media_root):
    folder = media_root / "screenshots"
    return sorted(p.name for p in folder.iterdir()) if folder.exists() else []


@pytest.fixture
def upload(screenshot, mock_ocr, chat_text):
    """Upload a screenshot whose OCR text is the chat for `handle` at `stage`."""
    def run(handle, stage=0, ocr_text=None, file=None, category="coffee_shop", **kwargs):
        text = ocr_text if ocr_text is not None else chat_text(handle, stage=stage)
        return process_upload(
            file or screenshot(),
            staff_id=kwargs.pop("staff_id", STAFF),
            stage=stage,
            category=category,
            ocr_provider=kwargs.pop("ocr_provider", mock_ocr(text)),
            **kwargs,
        )
    return run


@pytest.mark.django_db
class TestAccepted:

    def test_canvassing_opens_cycle(self, upload, media_root):
        result = upload("kopi_senja88", channel="instagram")

        assert result.valid is True, result.error
        assert result.username == "kopi_senja88"
        cycle = CanvassingCycle.objects.get()
        assert result.cycle == cycle
        assert cycle.prospect.handle == "kopi_senja88"
        assert cycle.status == CycleStatus.ACTIVE
        assert cycle.current_stage == 0
        assert cycle.next_followup_date == timezone.localdate() + timedelta(days=1)
        assert cycle.next_action == "Follow up day 1"

        message = Message.objects.get()
        assert message.stage == 0
        assert message.ocr_handle == "kopi_senja88"
        assert message.channel == "instagram"
        assert len(message.screenshot_hash) == 64
        assert _stored_files(media_root) == [message.screenshot_path.split("/")[-1]]
        assert not CycleStatusLog.objects.exists()

    def test_follow_up_advances_cycle(self, upload, cycle_factory):
        cycle = cycle_factory("warung_ibu", reached_stage=0)

        result = upload("warung_ibu", stage=1, interaction_status="no_response")

        assert result.valid is True, result.error
        assert result.message_snippet.startswith("*Day 1*")
        cycle.refresh_from_db()
        assert cycle.current_stage == 1
        assert cycle.status == CycleStatus.ONGOING
        assert cycle.last_followup_date == timezone.localdate()
        assert cycle.next_action == "Follow up day 2"

        log = CycleStatusLog.objects.get(cycle=cycle)
        assert (log.old_status, log.new_status, log.changed_by) == ("active", "ongoing", STAFF)

    def test_last_day_clears_next_follow_up(self, upload, cycle_factory):
        cycle = cycle_factory("warung_ibu", reached_stage=6, status=CycleStatus.ONGOING)

        result = upload("warung_ibu", stage=7)

        assert result.valid is True, result.error
        cycle.refresh_from_db()
        assert cycle.current_stage == 7
        assert cycle.next_followup_date is None
        assert cycle.next_action is None

    def test_refusal_closes_cycle(self, upload, cycle_factory):
        cycle = cycle_factory("warung_ibu", reached_stage=0)

        result = upload("warung_ibu", stage=1, interaction_status="menolak")

        assert result.valid is True, result.error
        cycle.refresh_from_db()
        assert cycle.status == CycleStatus.REJECTED
        assert cycle.failure_reason == REFUSED_FAILURE_REASON
        assert CycleStatusLog.objects.get(cycle=cycle).new_status == "rejected"

    def test_prospect_fields_merged(self, upload, cycle_factory):
        cycle = cycle_factory("warung_ibu", reached_stage=0)
        Prospect.objects.filter(pk=cycle.prospect_id).update(business_type="Warung", contact_number="0811")

        upload(
            "warung_ibu", stage=1, channel="instagram", business_type="Kedai kopi",
            contact_number="081234567890", external_link="https://instagram.com/warung_ibu",
        )

        prospect = Prospect.objects.get(pk=cycle.prospect_id)
        assert prospect.business_type == "Warung"
        assert prospect.contact_number == "081234567890"
        assert prospect.channel == "instagram"
        assert prospect.category == "coffee_shop"
        assert prospect.external_link == "https://instagram.com/warung_ibu"


@pytest.mark.django_db
class TestRejected:

    def test_duplicate_file_skips_ocr(self, upload, screenshot, media_root):
        first = upload("kopi_senja88", file=screenshot(b"same-bytes"))
        assert first.valid is True, first.error

        provider = MagicMock()
        result = upload("kopi_senja88", file=screenshot(b"same-bytes"), ocr_provider=provider)

        assert result.valid is False
        assert result.error_type == "duplicate_upload"
        provider.extract_text.assert_not_called()
        assert Message.objects.count() == 1
        assert len(_stored_files(media_root)) == 1

    def test_wrong_day_message(self, upload, cycle_factory, chat_text):
        cycle_factory("warung_ibu", reached_stage=2)

        result = upload("warung_ibu", stage=3, ocr_text=chat_text("warung_ibu", stage=1))

        assert result.valid is False
        assert result.error_type == "template_mismatch"
        assert "day 3" in result.error
        assert result.details["detected_stage"] == 1
        assert Message.objects.filter(stage=3).count() == 0

    def test_unreadable_handle(self, upload, media_root):
        result = upload("kopi_senja88", ocr_text="")

        assert result.valid is False
        assert result.error_type == "extraction_failed"
        assert _stored_files(media_root) == []
        assert not Prospect.objects.exists()

    def test_unknown_prospect_on_follow_up(self, upload, media_root):
        result = upload("kopi_senja88", stage=1)

        assert result.valid is False
        assert result.error_type == "resolution_failed"
        assert result.username == "kopi_senja88"
        assert _stored_files(media_root) == []

    def test_duplicate_canvassing(self, upload, cycle_factory):
        cycle_factory("kopi_senja88")

        result = upload("kopi_senja88")

        assert result.valid is False
        assert result.error_type == "resolution_failed"
        assert "already been canvassed" in result.error

    def test_stage_already_submitted_rolls_back_lengthening(self, upload, cycle_factory):
        cycle = cycle_factory("bebekcaberawit_grand", reached_stage=1)

        result = upload("bebekcaberawit_grandwis", stage=1)

        assert result.valid is False
        assert "already been submitted" in result.error
        cycle.prospect.refresh_from_db()
        assert cycle.prospect.handle == "bebekcaberawit_grand"

    @pytest.mark.parametrize("overrides", [
        {"category": "bakery"},
        {"stage": 9},
        {"channel": "myspace"},
        {"interaction_status": "maybe"},
    ])
    def test_invalid_input(self, upload, overrides):
        provider = MagicMock()
        result = upload("kopi_senja88", ocr_text="", ocr_provider=provider, **overrides)

        assert result.valid is False
        assert result.error_type == "invalid_input"
        provider.extract_text.assert_not_called()

    def test_unsupported_file_type(self, upload, screenshot):
        result = upload("kopi_senja88", file=screenshot(name="chat.pdf"))
        assert result.error_type == "invalid_input"

    def test_empty_file(self, upload):
        empty = MagicMock()
        empty.name = "chat.png"
        empty.read.return_value = b""
        result = upload("kopi_senja88", file=empty)
        assert result.error_type == "invalid_input"


@pytest.mark.django_db
def test_internal_fault_rolls_back_and_cleans_up(upload, media_root):
    with patch("canvassing.services.upload_pipeline._advance_cycle", side_effect=RuntimeError("boom")):
        with pytest.raises(UploadPipelineError):
            upload("kopi_senja88")

    assert not Prospect.objects.exists()
    assert not Message.objects.exists()
    assert _stored_files(media_root) == []
