from django.db import models
from django.db.models import Max, Q


class CycleStatus(models.TextChoices):
    """
    Lifecycle of one outreach relationship.

      In progress: active (canvassed, no reply yet) → ongoing (conversation running)
      Terminal:    converted, rejected
    """
    ACTIVE = "active", "Active"
    ONGOING = "ongoing", "Ongoing"
    CONVERTED = "converted", "Converted"
    REJECTED = "rejected", "Rejected"

    @classmethod
    def normalize(cls, value) -> "CycleStatus":
        """Map a stored or user-supplied status (including legacy synonyms) onto the enum."""
        if isinstance(value, cls):
            return value
        key = " ".join(str(value or "").strip().lower().replace("_", " ").split())
        if key in _STATUS_SYNONYMS:
            return _STATUS_SYNONYMS[key]
        raise ValueError(f"Unknown cycle status: {value!r}")

    @property
    def is_active_like(self) -> bool:
        return self in ACTIVE_LIKE_STATUSES


# Vocabulary used by earlier versions of the product, the bulk import sheet
# and staff-facing labels.
_STATUS_SYNONYMS = {
    "active": CycleStatus.ACTIVE,
    "aktif": CycleStatus.ACTIVE,
    "ongoing": CycleStatus.ONGOING,
    "on going": CycleStatus.ONGOING,
    "in progress": CycleStatus.ONGOING,
    "sedang berlangsung": CycleStatus.ONGOING,
    "berlangsung": CycleStatus.ONGOING,
    "converted": CycleStatus.CONVERTED,
    "completed": CycleStatus.CONVERTED,
    "success": CycleStatus.CONVERTED,
    "berhasil": CycleStatus.CONVERTED,
    "menerima": CycleStatus.CONVERTED,
    "rejected": CycleStatus.REJECTED,
    "invalid": CycleStatus.REJECTED,
    "failed": CycleStatus.REJECTED,
    "gagal": CycleStatus.REJECTED,
    "menolak": CycleStatus.REJECTED,
}

ACTIVE_LIKE_STATUSES = frozenset({CycleStatus.ACTIVE, CycleStatus.ONGOING})


class CanvassingCycle(models.Model):
    """
    One outreach relationship between a prospect and a staff member:
    canvassing (stage 0) followed by up to seven follow-up days.
    """

    prospect = models.ForeignKey("Prospect", on_delete=models.CASCADE, related_name="cycles")
    staff_id = models.PositiveIntegerField(db_index=True)

    start_date = models.DateField()
    current_stage = models.IntegerField(default=-1)  # highest stage with evidence, -1 if none
    status = models.CharField(max_length=20, choices=CycleStatus.choices, default=CycleStatus.ACTIVE)

    last_followup_date = models.DateField(null=True, blank=True)
    next_followup_date = models.DateField(null=True, blank=True)
    next_action = models.TextField(null=True, blank=True)

    failure_reason = models.CharField(max_length=255, null=True, blank=True)
    failure_notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "canvassing_cycles"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["prospect", "staff_id"], name="idx_cycle_prospect_staff"),
            models.Index(fields=["status"], name="idx_cycle_status"),
        ]
        constraints = [
            # Backstop for concurrent stage-0 uploads of the same target
            models.UniqueConstraint(
                fields=["prospect", "staff_id"],
                condition=Q(status__in=[CycleStatus.ACTIVE, CycleStatus.ONGOING]),
                name="uniq_active_cycle_per_prospect_staff",
            ),
        ]

    def save(self, *args, **kwargs):
        self.status = CycleStatus.normalize(self.status)
        super().save(*args, **kwargs)

    def max_message_stage(self) -> int | None:
        return self.messages.aggregate(top=Max("stage"))["top"]

    def __str__(self):
        return f"cycle prospect={self.prospect_id} staff={self.staff_id} stage={self.current_stage} ({self.status})"
