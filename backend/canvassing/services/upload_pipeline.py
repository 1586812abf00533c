"""
Screenshot Upload Pipeline

This is the core orchestrator. When a staff member submits a screenshot:
1. Validate the form input
2. Reject the file outright if its SHA-256 was uploaded before (no OCR spent)
3. Store the file
4. OCR the image, parse handle / message snippet / date
5. Check the snippet against the expected day's template (follow-ups)
6. Resolve the handle to a prospect and cycle (creating them at stage 0)
7. Record the Message, advance the cycle, merge prospect contact fields

Steps 6-7 run in one transaction. Any failure after step 2 rolls back the
database and deletes the stored file. The OCR call (step 4) stays outside the
transaction: it is a slow HTTP call and writes nothing.
"""
import hashlib
import logging
import os
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.utils import timezone

from canvassing.exceptions import (
    ExtractionFailed,
    InputRejected,
    ResolutionFailed,
    TemplateMismatch,
    UploadPipelineError,
    UploadRejected,
)
from canvassing.models import CanvassingCycle, CycleStatus, CycleStatusLog, InteractionOutcome, Message, Prospect
from canvassing.providers.ocr_provider import get_ocr_provider
from canvassing.services.identity_resolver import IdentityResolver
from canvassing.services.ocr_parser import OcrResult, OcrResultParser
from canvassing.services.template_matcher import TemplateMatcher

logger = logging.getLogger(__name__)

FINAL_STAGE = 7
ALLOWED_EXTENSIONS = ("jpeg", "jpg", "png", "gif")
CHANNELS = ("instagram", "tiktok", "facebook", "threads", "whatsapp", "other")
REFUSED_FAILURE_REASON = "Menolak (Staff Input)"


class UploadResult:
    """What the staff member gets back for one upload."""

    def __init__(
        self,
        valid: bool,
        username: str = None,
        message_snippet: str = None,
        date=None,
        cycle: CanvassingCycle = None,
        message: Message = None,
        error: str = None,
        error_type: str = None,
        details: dict = None,
    ):
        self.valid = valid
        self.username = username
        self.message_snippet = message_snippet
        self.date = date
        self.cycle = cycle
        self.message = message
        self.error = error
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "username": self.username,
            "message_snippet": self.message_snippet,
            "date": self.date.isoformat() if self.date else None,
            "cycle_id": self.cycle.pk if self.cycle else None,
            "message_id": self.message.pk if self.message else None,
            "error": self.error,
            "error_type": self.error_type,
            "details": self.details,
        }


def cycle_status_for_outcome(current_status: str, outcome: str | None) -> CycleStatus:
    """Cycle status after the staff member reports an interaction outcome."""
    current = CycleStatus.normalize(current_status)
    if outcome == InteractionOutcome.REFUSED:
        return CycleStatus.REJECTED
    if outcome == InteractionOutcome.ACCEPTED:
        return CycleStatus.CONVERTED
    if outcome == InteractionOutcome.INTERESTED:
        return CycleStatus.ONGOING
    if outcome == InteractionOutcome.NO_RESPONSE and current == CycleStatus.ACTIVE:
        return CycleStatus.ONGOING
    return current


def process_upload(
    screenshot,
    staff_id: int,
    stage: int,
    category: str,
    channel: str = None,
    interaction_status: str = None,
    contact_number: str = None,
    business_type: str = None,
    external_link: str = None,
    ocr_provider=None,
    parser: OcrResultParser = None,
    matcher: TemplateMatcher = None,
    resolver: IdentityResolver = None,
) -> UploadResult:
    """
    Run one screenshot through the pipeline.

    Rejections come back as UploadResult(valid=False). Internal faults are
    logged and re-raised as UploadPipelineError.
    """
    parser = parser or OcrResultParser()
    matcher = matcher or TemplateMatcher()
    resolver = resolver or IdentityResolver()

    stored_path = None
    ocr = OcrResult()
    try:
        # ─── Step 1: Input ───────────────────────────────────────────────
        content = _validate_input(screenshot, staff_id, stage, category, channel, interaction_status)

        # ─── Step 2: Duplicate file check (before any OCR work) ─────────
        screenshot_hash = hashlib.sha256(content).hexdigest()
        if Message.objects.filter(screenshot_hash=screenshot_hash).exists():
            raise InputRejected(
                "This screenshot has already been uploaded",
                error_type="duplicate_upload",
                details={"screenshot_hash": screenshot_hash},
            )

        # ─── Step 3: Store ──────────────────────────────────────────────
        stored_path = _store_screenshot(content, screenshot.name)

        # ─── Step 4: OCR + parse (outside txn: slow HTTP, no writes) ────
        provider = ocr_provider or get_ocr_provider()
        raw_text = provider.extract_text(content, os.path.basename(stored_path))
        ocr = parser.parse(raw_text, expected_stage=stage)

        # ─── Step 5: Template check ─────────────────────────────────────
        if stage > 0 and ocr.message_snippet:
            validation = matcher.validate_for_stage(ocr.message_snippet, stage)
            if not validation.valid:
                detected = f"day {validation.detected_stage}" if validation.detected_stage is not None else "nothing"
                raise TemplateMismatch(
                    f"The message does not match the day {stage} template (detected: {detected})",
                    details=validation.to_dict(),
                )

        if not ocr.username:
            raise ExtractionFailed(
                "Could not read the account handle. Make sure the handle is visible at the top "
                "of the screenshot and not covered by a notification.",
                details={"ocr_text_preview": " ".join((raw_text or "").split())[:100]},
            )

        # ─── Steps 6-7: Resolve + record (one transaction) ──────────────
        with transaction.atomic():
            resolution = resolver.resolve(ocr.username, staff_id, stage)
            if not resolution.valid:
                raise ResolutionFailed(
                    resolution.error,
                    details={**resolution.details, "candidates": [c.to_dict() for c in resolution.candidates]},
                )

            cycle = resolution.cycle
            if cycle.messages.filter(stage=stage).exists():
                raise ResolutionFailed(
                    f"Day {stage} has already been submitted for '{resolution.prospect.handle}'",
                    details={"cycle_id": cycle.pk, "stage": stage},
                )

            try:
                with transaction.atomic():
                    message = Message.objects.create(
                        cycle=cycle,
                        stage=stage,
                        category=category,
                        channel=channel,
                        interaction_status=interaction_status,
                        screenshot_path=stored_path,
                        screenshot_hash=screenshot_hash,
                        ocr_handle=ocr.username,
                        ocr_message_snippet=ocr.message_snippet,
                        ocr_date=ocr.date,
                        submitted_at=timezone.now(),
                    )
            except IntegrityError:
                # same file or same stage committed by a concurrent upload
                raise InputRejected(
                    "This screenshot or stage was just submitted by another upload",
                    error_type="duplicate_upload",
                    details={"cycle_id": cycle.pk, "stage": stage},
                )

            _advance_cycle(cycle, stage, interaction_status, staff_id)
            _merge_prospect_fields(
                resolution.prospect,
                category=category,
                channel=channel,
                contact_number=contact_number,
                business_type=business_type,
                external_link=external_link,
            )

    except UploadRejected as e:
        _discard(stored_path)
        logger.info(f"Upload by staff {staff_id} for day {stage} rejected ({e.error_type}): {e.message}")
        return UploadResult(
            valid=False,
            username=ocr.username,
            message_snippet=ocr.message_snippet,
            date=ocr.date,
            error=e.message,
            error_type=e.error_type,
            details=e.details,
        )
    except Exception as e:
        _discard(stored_path)
        logger.exception(
            f"Upload pipeline failed for staff {staff_id}, stage {stage}, file {stored_path}, "
            f"username {ocr.username!r}"
        )
        raise UploadPipelineError("Internal error while processing the screenshot") from e

    logger.info(
        f"Recorded message {message.pk}: day {stage} for '{resolution.prospect.handle}' "
        f"(cycle {cycle.pk}, staff {staff_id}, matched by {resolution.matched_by})"
    )
    return UploadResult(
        valid=True,
        username=ocr.username,
        message_snippet=ocr.message_snippet,
        date=ocr.date,
        cycle=cycle,
        message=message,
    )


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _validate_input(screenshot, staff_id, stage, category, channel, interaction_status) -> bytes:
    if screenshot is None:
        raise InputRejected("A screenshot is required")
    if staff_id is None:
        raise InputRejected("staff_id is required")
    if not isinstance(stage, int) or not 0 <= stage <= FINAL_STAGE:
        raise InputRejected(f"Stage must be between 0 and {FINAL_STAGE}")
    if category not in settings.CANVASSING_CATEGORIES:
        raise InputRejected(
            f"Unknown category '{category}'", details={"allowed": list(settings.CANVASSING_CATEGORIES)}
        )
    if channel and channel not in CHANNELS:
        raise InputRejected(f"Unknown channel '{channel}'", details={"allowed": list(CHANNELS)})
    if interaction_status and interaction_status not in InteractionOutcome.values:
        raise InputRejected(f"Unknown interaction status '{interaction_status}'")

    extension = os.path.splitext(screenshot.name or "")[1].lstrip(".").lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise InputRejected(f"Screenshot must be one of: {', '.join(ALLOWED_EXTENSIONS)}")

    content = screenshot.read()
    if not content:
        raise InputRejected("The screenshot file is empty")
    if len(content) > settings.MAX_SCREENSHOT_MB * 1024 * 1024:
        raise InputRejected(f"Screenshot is larger than {settings.MAX_SCREENSHOT_MB}MB")
    return content


def _store_screenshot(content: bytes, original_name: str) -> str:
    extension = os.path.splitext(original_name)[1].lower()
    name = f"{settings.SCREENSHOT_DIR}/{uuid.uuid4()}{extension}"
    return default_storage.save(name, ContentFile(content))


def _discard(stored_path: str | None):
    if not stored_path:
        return
    try:
        default_storage.delete(stored_path)
    except OSError:
        logger.exception(f"Could not delete orphaned screenshot {stored_path}")


def _advance_cycle(cycle: CanvassingCycle, stage: int, interaction_status: str | None, staff_id: int):
    today = timezone.localdate()
    old_status = CycleStatus.normalize(cycle.status)
    new_status = cycle_status_for_outcome(old_status, interaction_status)

    cycle.current_stage = max(cycle.current_stage, stage)
    cycle.last_followup_date = today
    if stage < FINAL_STAGE:
        cycle.next_followup_date = today + timedelta(days=1)
        cycle.next_action = f"Follow up day {stage + 1}"
    else:
        cycle.next_followup_date = None
        cycle.next_action = None

    cycle.status = new_status
    if new_status == CycleStatus.REJECTED and old_status != CycleStatus.REJECTED:
        cycle.failure_reason = REFUSED_FAILURE_REASON
    cycle.save()

    if new_status != old_status:
        CycleStatusLog.objects.create(
            cycle=cycle,
            old_status=old_status,
            new_status=new_status,
            changed_by=staff_id,
            notes=f"Reported '{interaction_status}' on day {stage} upload",
        )
        logger.info(f"Cycle {cycle.pk}: {old_status} -> {new_status} (staff-reported {interaction_status})")


def _merge_prospect_fields(prospect: Prospect, contact_number: str = None, **fields):
    """Fill blank prospect fields; a newly supplied contact number always wins."""
    changed = []
    for name, value in fields.items():
        if value and not getattr(prospect, name):
            setattr(prospect, name, value)
            changed.append(name)
    if contact_number and contact_number != prospect.contact_number:
        prospect.contact_number = contact_number
        changed.append("contact_number")
    if changed:
        prospect.save(update_fields=changed + ["updated_at"])
