"""
Splits the chat body of OCR text into individual message bubbles and picks
the one that serves as evidence for a stage.

A follow-up screenshot typically shows the whole conversation so far, so for
stage N we want the bubble whose template is day N rather than everything.
"""
import re

from canvassing.services.template_matcher import TemplateMatcher

SNIPPET_MAX_LENGTH = 1000
MIN_SECTION_LENGTH = 20
MIN_MESSAGE_LENGTH = 30
MIN_LINE_LENGTH = 10

_TIMESTAMP_SPLIT_RE = re.compile(r"(?:hari\s+ini\s+[\d:.]+|today\s+[\d:.]+)", re.I)
_MESSAGE_INDICATOR_RE = re.compile(
    r"(?:halo|selamat|terima\s+kasih|qris|stiqr|day\s+\d+|masuk\s+2026|biaya\s+operasional)", re.I
)
_PROFILE_UI_RE = re.compile(r"\b(?:lihat|profil|tanyakan|obrolan|bisnis|pengikut|followers|postingan|posts)\b", re.I)
_PROFILE_LINE_RE = re.compile(
    r"^(?:pengikut|followers|following|postingan|posts|@|lihat|profil|tanyakan|obrolan|bisnis)", re.I
)
_TIMESTAMP_LINE_RE = re.compile(r"^(?:hari\s+ini|today|\d{1,2}:\d{2})", re.I)


class MessageSegmenter:

    def __init__(self, matcher: TemplateMatcher = None):
        self.matcher = matcher or TemplateMatcher()

    def segment(self, raw_text: str) -> list[str]:
        """Message bubbles in screen order (oldest first)."""
        if not raw_text:
            return []
        return self._split_on_timestamps(raw_text) or self._group_lines(raw_text)

    def select_for_stage(self, segments: list[str], stage: int | None) -> str | None:
        if not segments:
            return None

        if stage is None or stage <= 0:
            return " ".join(segments)[:SNIPPET_MAX_LENGTH]

        for segment in segments:
            if self.matcher.detect_stage(segment) == stage:
                return segment[:SNIPPET_MAX_LENGTH]
        # most recent bubble is the best guess for the follow-up just sent
        return segments[-1][:SNIPPET_MAX_LENGTH]

    def _split_on_timestamps(self, raw_text: str) -> list[str]:
        messages = []
        for section in _TIMESTAMP_SPLIT_RE.split(raw_text):
            section = section.strip()
            if len(section) < MIN_SECTION_LENGTH or not _MESSAGE_INDICATOR_RE.search(section):
                continue
            cleaned = " ".join(_PROFILE_UI_RE.sub("", section).split())
            if len(cleaned) > MIN_MESSAGE_LENGTH:
                messages.append(cleaned)
        return messages

    def _group_lines(self, raw_text: str) -> list[str]:
        message_lines = []
        started = False
        for line in raw_text.splitlines():
            line = line.strip()
            if _PROFILE_LINE_RE.match(line):
                continue
            if _MESSAGE_INDICATOR_RE.search(line):
                started = True
            if started and len(line) > MIN_LINE_LENGTH:
                message_lines.append(line)

        messages = []
        current = []
        for line in message_lines:
            if _TIMESTAMP_LINE_RE.match(line):
                if current:
                    messages.append(" ".join(current))
                    current = []
            else:
                current.append(line)
        if current:
            messages.append(" ".join(current))
        return messages
