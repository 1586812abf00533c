"""
Turns raw OCR text into the three things an upload needs: the prospect's
handle (from the header), the stage's message snippet (from the body) and
the date shown on the chat.
"""
import logging
import re
from datetime import date

from django.utils import timezone

from canvassing.services.message_segmenter import MessageSegmenter
from canvassing.services.username_extractor import UsernameExtractor, header_window

logger = logging.getLogger(__name__)

_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\b")
_TODAY_RE = re.compile(r"\b(?:hari\s+ini|today)\b", re.I)


class OcrResult:
    def __init__(self, username: str = None, message_snippet: str = None, date: date = None):
        self.username = username
        self.message_snippet = message_snippet
        self.date = date

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "message_snippet": self.message_snippet,
            "date": self.date.isoformat() if self.date else None,
        }


def parse_chat_date(text: str, today: date = None) -> date | None:
    """First valid D/M/Y or D-M-Y date; "hari ini"/"today" means today."""
    for match in _NUMERIC_DATE_RE.finditer(text or ""):
        day, month, year = match.groups()
        if len(year) == 2:
            year = "20" + year
        elif len(year) == 3:
            continue
        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            continue

    if _TODAY_RE.search(text or ""):
        return today or timezone.localdate()
    return None


class OcrResultParser:

    def __init__(self, extractor: UsernameExtractor = None, segmenter: MessageSegmenter = None):
        self.extractor = extractor or UsernameExtractor()
        self.segmenter = segmenter or MessageSegmenter()

    def parse(self, raw_text: str, expected_stage: int = None, today: date = None) -> OcrResult:
        if not raw_text or not raw_text.strip():
            return OcrResult()

        header = header_window(raw_text)
        username = self.extractor.extract_from_header(header)
        chat_date = parse_chat_date(" ".join(raw_text.split()), today=today)
        snippet = self.segmenter.select_for_stage(self.segmenter.segment(raw_text), expected_stage)

        logger.info(
            "Parsed OCR text (%d chars): username=%r date=%s snippet=%d chars",
            len(raw_text), username, chat_date, len(snippet or ""),
        )
        return OcrResult(username=username, message_snippet=snippet, date=chat_date)
