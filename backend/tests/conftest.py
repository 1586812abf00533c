import itertools

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from canvassing.models import CanvassingCycle, CycleStatus, Message, Prospect
from canvassing.providers.ocr_provider import MockOcrProvider
from canvassing.services.template_matcher import STAGE_TEMPLATES

CANVASSING_BODY = (
    "Halo kak, perkenalkan aku Bhanu dari STIQR. Ada QRIS yang sudah include "
    "aplikasi kasirnya, gratis tanpa biaya langganan dan MDR 0% untuk UMKM."
)

_hash_counter = itertools.count(1)


def build_chat_text(handle: str, stage: int = 0, display_name: str = "Toko Demo") -> str:
    """OCR text of an Instagram business chat where stage's message is the latest bubble."""
    header = f"{display_name} {handle} · Obrolan bisnis\nAnda memulai obrolan dengan {handle}\n"
    text = header + f"Hari ini 09:00\n{CANVASSING_BODY}\n"
    if stage > 0:
        phrases = " ".join(STAGE_TEMPLATES[stage].phrases)
        text += f"Hari ini 10:{stage:02d}\n*Day {stage}* {phrases}\n"
    return text


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.OCR_PROVIDER = "mock"
    settings.OCR_MOCK_TEXT = ""
    return settings.MEDIA_ROOT


@pytest.fixture
def chat_text():
    return build_chat_text


@pytest.fixture
def screenshot():
    """Factory for distinct in-memory PNG uploads (distinct bytes -> distinct hashes)."""
    def make(content: bytes = None, name: str = "chat.png"):
        content = content or f"fake-png-{next(_hash_counter)}".encode()
        return SimpleUploadedFile(name, content, content_type="image/png")
    return make


@pytest.fixture
def mock_ocr():
    return MockOcrProvider


@pytest.fixture
def cycle_factory(db):
    """
    Prospect + cycle with messages for stages 0..reached_stage already on file,
    each recorded with the OCR reading `ocr_handle` (defaults to the handle).
    """
    def make(handle: str, staff_id: int = 7, reached_stage: int = 0, status=CycleStatus.ACTIVE,
             ocr_handle: str = None, submitted_at=None):
        prospect, _ = Prospect.objects.get_or_create(handle=handle)
        cycle = CanvassingCycle.objects.create(
            prospect=prospect,
            staff_id=staff_id,
            start_date=timezone.localdate(),
            current_stage=reached_stage,
            status=status,
        )
        for stage in range(reached_stage + 1):
            Message.objects.create(
                cycle=cycle,
                stage=stage,
                category="coffee_shop",
                screenshot_path=f"screenshots/{handle}-{stage}.png",
                screenshot_hash=f"{next(_hash_counter):064x}",
                ocr_handle=ocr_handle or handle,
                submitted_at=submitted_at or timezone.now(),
            )
        return cycle
    return make
