"""
Rewrite stored cycle statuses that use legacy vocabulary ("completed",
"sedang berlangsung", "gagal", ...) to the canonical values.

Usage:
    python manage.py normalize_cycle_statuses
    python manage.py normalize_cycle_statuses --dry-run  # Only report
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from canvassing.models import CanvassingCycle, CycleStatus


class Command(BaseCommand):
    help = "Normalize legacy cycle status values to active/ongoing/converted/rejected"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run", action="store_true",
            help="Report what would change without writing",
        )

    def handle(self, *args, **options):
        stored = CanvassingCycle.objects.order_by().values_list("status", flat=True).distinct()

        updated = 0
        unknown = []
        with transaction.atomic():
            for raw in stored:
                try:
                    canonical = CycleStatus.normalize(raw)
                except ValueError:
                    unknown.append(raw)
                    continue
                if raw == canonical.value:
                    continue

                rows = CanvassingCycle.objects.filter(status=raw)
                count = rows.count()
                self.stdout.write(f"{raw!r} -> {canonical.value!r}: {count} cycles")
                if not options["dry_run"]:
                    rows.update(status=canonical.value)
                updated += count

        for raw in unknown:
            self.stdout.write(self.style.WARNING(f"Unknown status {raw!r} left untouched"))

        verb = "Would normalize" if options["dry_run"] else "Normalized"
        self.stdout.write(self.style.SUCCESS(f"{verb} {updated} cycles, {len(unknown)} unknown status values."))
