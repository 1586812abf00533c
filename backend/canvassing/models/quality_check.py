from django.db import models


class QualityCheck(models.Model):
    """A supervisor's review of one uploaded message. At most one per message."""

    class Verdict(models.TextChoices):
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    message = models.OneToOneField("Message", on_delete=models.CASCADE, related_name="quality_check")
    supervisor_id = models.PositiveIntegerField(db_index=True)
    status = models.CharField(max_length=20, choices=Verdict.choices)
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "quality_checks"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.status} message={self.message_id} by supervisor={self.supervisor_id}"
