"""
Seed data script: populates the database with demo prospects at various
points of the canvassing → follow-up journey, by pushing synthetic
screenshots through the real upload pipeline (with canned OCR text).

Usage: cd backend && python seed_data.py
"""
import os
import sys
import django

# Setup Django
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'canvassing_monitor.settings')
django.setup()

from django.core.files.base import ContentFile

from canvassing.models import CanvassingCycle, Prospect
from canvassing.providers.ocr_provider import MockOcrProvider
from canvassing.services.message_admin import review_message, update_cycle_status
from canvassing.services.template_matcher import STAGE_TEMPLATES
from canvassing.services.upload_pipeline import process_upload

SUPERVISOR_ID = 100

PROSPECTS = [
    # (display name, handle, staff_id, category, days reached, reported outcome on last upload)
    ("Kopi Senja", "kopi_senja88", 1, "coffee_shop", 3, "tertarik"),
    ("Warung Ibu", "warung_ibu", 1, "umkm_fb", 1, "no_response"),
    ("Bebek Cabe Rawit", "bebekcaberawit_grandwis", 2, "restoran", 7, "menerima"),
    ("Roti Bakar 88", "rotibakar_88", 2, "umkm_fb", 2, "menolak"),
    ("Sate Pak Kumis", "satepak_kumis", 3, "restoran", 0, None),
]

CANVASSING_BODY = (
    "Halo kak, perkenalkan aku Bhanu dari STIQR. Ada QRIS yang sudah include "
    "aplikasi kasirnya, gratis tanpa biaya langganan dan MDR 0% untuk UMKM."
)


def _ocr_text(display_name: str, handle: str, stage: int) -> str:
    header = f"{display_name} {handle} · Obrolan bisnis\nAnda memulai obrolan dengan {handle}\n"
    if stage == 0:
        return header + f"Hari ini 09:00\n{CANVASSING_BODY}\n"
    phrases = " ".join(STAGE_TEMPLATES[stage].phrases)
    return header + f"Hari ini 09:00\n{CANVASSING_BODY}\nHari ini 10:{stage:02d}\n*Day {stage}* {phrases}\n"


def seed():
    existing = Prospect.objects.count()
    if existing > 0:
        print(f"Database already has {existing} prospects. Skipping seed.")
        print("Run 'python manage.py flush --no-input' to clear, then re-seed.")
        return

    for display_name, handle, staff_id, category, last_stage, outcome in PROSPECTS:
        for stage in range(last_stage + 1):
            screenshot = ContentFile(f"demo:{handle}:{stage}".encode(), name=f"{handle}_day{stage}.png")
            result = process_upload(
                screenshot=screenshot,
                staff_id=staff_id,
                stage=stage,
                category=category,
                channel="instagram",
                interaction_status=outcome if stage == last_stage else "no_response",
                ocr_provider=MockOcrProvider(_ocr_text(display_name, handle, stage)),
            )
            if not result.valid:
                print(f"  ! {handle} day {stage} rejected: {result.error}")
                break
            print(f"  {handle:24s} day {stage} -> message {result.message.pk}")

    # A supervisor has already worked part of the review queue
    kopi = CanvassingCycle.objects.get(prospect__handle="kopi_senja88")
    for message in kopi.messages.order_by("stage")[:2]:
        review_message(message.pk, SUPERVISOR_ID, "approved", notes="Sesuai template")

    sate = CanvassingCycle.objects.get(prospect__handle="satepak_kumis")
    update_cycle_status(
        sate.pk, "gagal", changed_by=SUPERVISOR_ID,
        notes="Nomor tidak aktif", failure_reason="Tidak bisa dihubungi",
    )

    # Print summary by cycle
    print(f"\n{'='*50}")
    print(f"Seed complete! {CanvassingCycle.objects.count()} cycles:\n")
    for cycle in CanvassingCycle.objects.select_related("prospect").order_by("staff_id", "prospect__handle"):
        print(
            f"  staff {cycle.staff_id} | {cycle.prospect.handle:24s} | "
            f"day {cycle.current_stage} | {cycle.status}"
        )
    print(f"\nRun the server: python manage.py runserver")


if __name__ == "__main__":
    seed()
