"""
Identity Resolver

Maps a handle read off a screenshot to the (Prospect, CanvassingCycle) it is
evidence for.

Stage 0 (canvassing) finds or creates the prospect and opens a new cycle,
refusing a second active cycle for the same prospect and staff member.

Stage N > 0 (follow-up) must land on an existing active-like cycle. OCR
reads of the same header differ between screenshots (truncation, dropped
underscores, misread characters), so the prospect lookup cascades:

    exact → prefix → past OCR readings → fuzzy (past OCR readings)
          → fuzzy (active prospects) → shared underscore segment (active prospects)

Each step produces fully scored candidates; the first step with any
candidate wins and one deterministic selection picks the prospect.
"""
import logging
import re

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rapidfuzz.distance import Levenshtein

from canvassing.models import ACTIVE_LIKE_STATUSES, CanvassingCycle, CycleStatus, Message, Prospect

logger = logging.getLogger(__name__)

MIN_PREFIX_LENGTH = 5
MIN_SEGMENT_LENGTH = 3
MIN_NORMALIZED_EQUALITY_LENGTH = 5
DIAGNOSTIC_LIMIT = 20

DUPLICATE_CANVASSING = "This prospect has already been canvassed by you and the cycle is still active"


# ─── Result types ────────────────────────────────────────────────────────────

class MatchCandidate:
    """A prospect the handle might denote, with the evidence for it."""

    def __init__(self, prospect: Prospect, distance: int, is_active: bool, source: str):
        self.prospect = prospect
        self.distance = distance
        self.is_active = is_active
        self.source = source

    def sort_key(self) -> tuple:
        return (self.distance, -len(self.prospect.handle), self.prospect.pk)

    def to_dict(self) -> dict:
        return {
            "handle": self.prospect.handle,
            "distance": self.distance,
            "is_active": self.is_active,
            "source": self.source,
        }


class ResolutionResult:
    def __init__(
        self,
        valid: bool,
        cycle: CanvassingCycle = None,
        prospect: Prospect = None,
        error: str = None,
        matched_by: str = None,
        candidates: list[MatchCandidate] = None,
        details: dict = None,
    ):
        self.valid = valid
        self.cycle = cycle
        self.prospect = prospect
        self.error = error
        self.matched_by = matched_by
        self.candidates = candidates or []
        self.details = details or {}

    @classmethod
    def failure(cls, error: str, **kwargs) -> "ResolutionResult":
        return cls(valid=False, error=error, **kwargs)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "cycle_id": self.cycle.pk if self.cycle else None,
            "prospect_handle": self.prospect.handle if self.prospect else None,
            "error": self.error,
            "matched_by": self.matched_by,
            "candidates": [c.to_dict() for c in self.candidates],
            "details": self.details,
        }


# ─── Handle comparison ───────────────────────────────────────────────────────

def normalize_handle(handle: str) -> str:
    """Lowercase, trim, drop a trailing run of non-alphanumerics ("kopi_senja.." -> "kopi_senja")."""
    handle = (handle or "").strip().lower()
    return re.sub(r"[^a-z0-9]+$", "", handle)


def _alnum(handle: str) -> str:
    return re.sub(r"[^a-z0-9]", "", handle.lower())


def fuzzy_distance(a: str, b: str) -> int:
    """Levenshtein distance, treating handles that differ only in punctuation as identical."""
    normalized_a = _alnum(a)
    if normalized_a == _alnum(b) and len(normalized_a) > MIN_NORMALIZED_EQUALITY_LENGTH:
        return 0
    return Levenshtein.distance(a, b)


def distance_threshold(handle: str) -> int:
    if len(handle) < 8:
        return 1
    if len(handle) < 15:
        return 2
    return 3


def first_segment(handle: str, min_length: int = MIN_SEGMENT_LENGTH) -> str | None:
    """First underscore-delimited segment ("warung_sate" -> "warung"), None if absent or too short."""
    if "_" not in handle:
        return None
    segment = handle.split("_", 1)[0]
    return segment if len(segment) >= min_length else None


def is_prefix_match(a: str, b: str) -> bool:
    shorter, longer = sorted((a, b), key=len)
    return len(shorter) >= MIN_PREFIX_LENGTH and longer.startswith(shorter)


def select_candidate(candidates: list[MatchCandidate]) -> MatchCandidate | None:
    """
    Closest distance wins, except that an active-like candidate within one
    edit of the best beats an inactive closer one. Remaining ties go to the
    longer (less truncated) handle, then the older record.
    """
    if not candidates:
        return None
    best_distance = min(c.distance for c in candidates)
    active_near_best = [c for c in candidates if c.is_active and c.distance <= best_distance + 1]
    pool = active_near_best or [c for c in candidates if c.distance == best_distance]
    return min(pool, key=MatchCandidate.sort_key)


# ─── Resolver ────────────────────────────────────────────────────────────────

class IdentityResolver:

    def resolve(self, handle: str, staff_id: int, stage: int) -> ResolutionResult:
        handle = normalize_handle(handle)
        if not handle:
            return ResolutionResult.failure("No handle to resolve")

        with transaction.atomic():
            if stage == 0:
                return self._resolve_canvassing(handle, staff_id)
            return self._resolve_followup(handle, staff_id, stage)

    # ─── Stage 0 ─────────────────────────────────────────────────────────

    def _resolve_canvassing(self, handle: str, staff_id: int) -> ResolutionResult:
        prospect, created = Prospect.objects.get_or_create(handle=handle)
        if created:
            logger.info(f"Created prospect '{handle}' for staff {staff_id}")

        existing = self._find_active_cycle(prospect, staff_id)
        if existing is not None:
            logger.info(f"Duplicate canvassing of '{prospect.handle}' by staff {staff_id} (cycle {existing.pk})")
            return ResolutionResult.failure(
                DUPLICATE_CANVASSING, prospect=prospect, matched_by="exact",
                details={"handle": handle, "existing_cycle_id": existing.pk},
            )

        try:
            with transaction.atomic():
                cycle = CanvassingCycle.objects.create(
                    prospect=prospect,
                    staff_id=staff_id,
                    start_date=timezone.localdate(),
                    current_stage=0,
                    status=CycleStatus.ACTIVE,
                )
        except IntegrityError:
            # a concurrent upload opened the cycle between our check and insert
            logger.warning(f"Concurrent canvassing of '{prospect.handle}' by staff {staff_id} lost the race")
            return ResolutionResult.failure(
                DUPLICATE_CANVASSING, prospect=prospect, matched_by="exact", details={"handle": handle},
            )

        logger.info(f"Opened cycle {cycle.pk} for '{prospect.handle}' (staff {staff_id})")
        return ResolutionResult(
            valid=True, cycle=cycle, prospect=prospect, matched_by="created" if created else "exact",
        )

    # ─── Stage N > 0 ─────────────────────────────────────────────────────

    def _resolve_followup(self, handle: str, staff_id: int, stage: int) -> ResolutionResult:
        active_ids = set(
            CanvassingCycle.objects.filter(staff_id=staff_id, status__in=ACTIVE_LIKE_STATUSES)
            .values_list("prospect_id", flat=True)
        )
        ocr_readings = self._ocr_readings(staff_id)

        matched_by, candidates = None, []
        for name, step in (
            ("exact", lambda: self._exact(handle, active_ids)),
            ("prefix", lambda: self._prefix(handle, active_ids)),
            ("ocr_history", lambda: self._ocr_history(handle, ocr_readings, active_ids)),
            ("fuzzy_ocr_history", lambda: self._fuzzy_ocr_history(handle, ocr_readings, active_ids)),
            ("fuzzy_active", lambda: self._fuzzy_active(handle, active_ids)),
            ("segment_active", lambda: self._segment_active(handle, active_ids)),
        ):
            candidates = step()
            if candidates:
                matched_by = name
                break

        chosen = select_candidate(candidates)
        if chosen is not None and not chosen.is_active:
            # a closer prospect owned by someone else must not hide this staff member's own
            chosen = select_candidate([c for c in candidates if c.is_active]) or chosen
        if chosen is None:
            logger.info(f"No prospect matches '{handle}' for staff {staff_id}")
            details = self._diagnostics(handle, staff_id, active_ids, ocr_readings)
            return ResolutionResult.failure(
                f"No canvassed prospect matches '{handle}'. Prospects on file for you: "
                f"{', '.join(details['prospects']) or 'none'}; earlier screenshot readings: "
                f"{', '.join(details['ocr_handles']) or 'none'}",
                details=details,
            )

        prospect = chosen.prospect
        logger.info(
            "Resolved '%s' to prospect '%s' via %s (distance %s, %d candidates)",
            handle, prospect.handle, matched_by, chosen.distance, len(candidates),
        )

        cycle = self._find_active_cycle(prospect, staff_id)
        if cycle is None:
            latest = prospect.cycles.filter(staff_id=staff_id).order_by("-created_at").first()
            if latest is None:
                error = f"Prospect '{prospect.handle}' has never been canvassed by you"
            else:
                error = f"Prospect '{prospect.handle}' has no active cycle (latest cycle is {latest.status})"
            return ResolutionResult.failure(
                error, prospect=prospect, matched_by=matched_by, candidates=candidates,
                details={"handle": handle, "latest_status": latest.status if latest else None},
            )

        if not cycle.messages.filter(stage=stage - 1).exists():
            missing = "canvassing (stage 0)" if stage == 1 else f"follow-up day {stage - 1}"
            return ResolutionResult.failure(
                f"Cannot submit follow-up day {stage} for '{prospect.handle}': {missing} has not been submitted",
                cycle=cycle, prospect=prospect, matched_by=matched_by, candidates=candidates,
                details={"handle": handle, "missing_stage": stage - 1},
            )

        self._lengthen_handle(prospect, handle)
        return ResolutionResult(
            valid=True, cycle=cycle, prospect=prospect, matched_by=matched_by, candidates=candidates,
        )

    # ─── Cascade steps ───────────────────────────────────────────────────

    def _candidates(self, prospects, handle, active_ids, source, distance=None) -> list[MatchCandidate]:
        return [
            MatchCandidate(
                prospect=p,
                distance=fuzzy_distance(handle, p.handle) if distance is None else distance,
                is_active=p.pk in active_ids,
                source=source,
            )
            for p in prospects
        ]

    def _exact(self, handle, active_ids):
        return self._candidates(Prospect.objects.filter(handle=handle), handle, active_ids, "exact", distance=0)

    def _prefix(self, handle, active_ids):
        query = Q()
        if len(handle) >= MIN_PREFIX_LENGTH:
            query |= Q(handle__startswith=handle)
        truncations = [handle[:n] for n in range(MIN_PREFIX_LENGTH, len(handle))]
        if truncations:
            query |= Q(handle__in=truncations)
        # short shared segments ("toko_") are only trusted for active prospects, see _segment_active
        segment = first_segment(handle, min_length=MIN_PREFIX_LENGTH)
        if segment:
            query |= Q(handle__startswith=segment + "_")
        if not query:
            return []
        return self._candidates(Prospect.objects.filter(query).exclude(handle=handle), handle, active_ids, "prefix")

    def _ocr_history(self, handle, ocr_readings, active_ids):
        prospect_ids = {
            prospect_id for reading, prospect_id in ocr_readings
            if reading == handle or is_prefix_match(reading, handle)
        }
        return self._candidates(Prospect.objects.filter(pk__in=prospect_ids), handle, active_ids, "ocr_history")

    def _fuzzy_ocr_history(self, handle, ocr_readings, active_ids):
        threshold = distance_threshold(handle)
        best_by_prospect = {}
        for reading, prospect_id in ocr_readings:
            distance = fuzzy_distance(handle, reading)
            if distance <= threshold and distance < best_by_prospect.get(prospect_id, threshold + 1):
                best_by_prospect[prospect_id] = distance

        prospects = Prospect.objects.in_bulk(list(best_by_prospect))
        return [
            MatchCandidate(prospects[pid], distance, pid in active_ids, "fuzzy_ocr_history")
            for pid, distance in best_by_prospect.items()
            if pid in prospects
        ]

    def _fuzzy_active(self, handle, active_ids):
        threshold = distance_threshold(handle)
        candidates = self._candidates(Prospect.objects.filter(pk__in=active_ids), handle, active_ids, "fuzzy_active")
        return [c for c in candidates if c.distance <= threshold]

    def _segment_active(self, handle, active_ids):
        segment = first_segment(handle)
        if not segment:
            return []
        prospects = Prospect.objects.filter(pk__in=active_ids, handle__startswith=segment + "_")
        return self._candidates(prospects, handle, active_ids, "segment_active")

    # ─── Helpers ─────────────────────────────────────────────────────────

    def _find_active_cycle(self, prospect: Prospect, staff_id: int) -> CanvassingCycle | None:
        return (
            CanvassingCycle.objects.select_for_update()
            .filter(prospect=prospect, staff_id=staff_id, status__in=ACTIVE_LIKE_STATUSES)
            .order_by("-created_at")
            .first()
        )

    def _ocr_readings(self, staff_id: int) -> list[tuple[str, int]]:
        """Distinct (ocr_handle, prospect_id) pairs from this staff member's past uploads."""
        return list(
            Message.objects.filter(cycle__staff_id=staff_id, ocr_handle__isnull=False)
            .exclude(ocr_handle="")
            .values_list("ocr_handle", "cycle__prospect_id")
            .distinct()
        )

    def _lengthen_handle(self, prospect: Prospect, handle: str):
        """Stored handles only ever grow: a longer read is a less truncated one."""
        if len(handle) <= len(prospect.handle):
            return
        if Prospect.objects.filter(handle=handle).exclude(pk=prospect.pk).exists():
            logger.warning(
                f"Not lengthening '{prospect.handle}' to '{handle}': another prospect already owns that handle"
            )
            return
        logger.info(f"Lengthening prospect handle '{prospect.handle}' -> '{handle}'")
        prospect.handle = handle
        prospect.save(update_fields=["handle", "updated_at"])

    def _diagnostics(self, handle, staff_id, active_ids, ocr_readings) -> dict:
        prospects = (
            Prospect.objects.filter(pk__in=active_ids).order_by("handle").values_list("handle", flat=True)
        )
        ocr_handles = sorted({reading for reading, _ in ocr_readings})
        return {
            "handle": handle,
            "staff_id": staff_id,
            "prospects": list(prospects[:DIAGNOSTIC_LIMIT]),
            "ocr_handles": ocr_handles[:DIAGNOSTIC_LIMIT],
        }
