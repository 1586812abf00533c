from django.db import models


class InteractionOutcome(models.TextChoices):
    """Outcome of the conversation as reported by the staff member on upload."""
    NO_RESPONSE = "no_response", "No response"
    REFUSED = "menolak", "Menolak"
    INTERESTED = "tertarik", "Tertarik"
    ACCEPTED = "menerima", "Menerima"


class ValidationStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    VALID = "valid", "Valid"
    INVALID = "invalid", "Invalid"


class Message(models.Model):
    """
    One stage's screenshot evidence for a cycle.

    The ocr_* fields keep what was read off the screenshot (not the canonical
    prospect handle) so later uploads can be cross-referenced against earlier
    readings of the same chat header.
    """

    cycle = models.ForeignKey("CanvassingCycle", on_delete=models.CASCADE, related_name="messages")
    stage = models.PositiveSmallIntegerField(default=0)  # 0 = canvassing, 1-7 = follow up

    category = models.CharField(max_length=50)
    channel = models.CharField(max_length=20, null=True, blank=True)
    interaction_status = models.CharField(
        max_length=20, choices=InteractionOutcome.choices, null=True, blank=True
    )

    screenshot_path = models.CharField(max_length=255)
    screenshot_hash = models.CharField(max_length=64, unique=True)  # SHA-256 hex digest

    ocr_handle = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    ocr_message_snippet = models.TextField(null=True, blank=True)
    ocr_date = models.DateField(null=True, blank=True)

    submitted_at = models.DateTimeField()
    validation_status = models.CharField(
        max_length=20, choices=ValidationStatus.choices, default=ValidationStatus.PENDING
    )
    invalid_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "messages"
        ordering = ["-submitted_at"]
        indexes = [
            models.Index(fields=["cycle", "stage"], name="idx_message_cycle_stage"),
            models.Index(fields=["validation_status"], name="idx_message_validation"),
            models.Index(fields=["submitted_at"], name="idx_message_submitted"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["cycle", "stage"], name="uniq_message_cycle_stage"),
        ]

    def __str__(self):
        return f"stage {self.stage} for cycle={self.cycle_id} ({self.validation_status})"
