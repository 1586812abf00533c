from django.db import models


class CycleStatusLog(models.Model):
    """
    Audit trail of cycle status changes, whether they came from a staff
    member's reported outcome on upload or a supervisor override.
    """

    cycle = models.ForeignKey("CanvassingCycle", on_delete=models.CASCADE, related_name="status_logs")

    old_status = models.CharField(max_length=20, null=True, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.PositiveIntegerField()  # staff or supervisor id
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "cycle_status_logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["cycle", "-created_at"], name="idx_statuslog_cycle_date"),
        ]

    def __str__(self):
        return f"cycle={self.cycle_id}: {self.old_status} -> {self.new_status} by {self.changed_by}"
