"""
Stage Template Matcher

Each outreach day has a scripted message. A screenshot's message text is
scored against the script of a stage:

- +2 per template keyword present
- +5 per template phrase present (phrases are more specific)
- +10 for an explicit "day N" marker (e.g. "*Day 3*")

detect_stage() picks the best-scoring stage (minimum 5 points).
validate_for_stage() only confirms the expected day's markers are present
(minimum 3 points). A follow-up screenshot usually still shows earlier
days' messages above the current one, so other stages scoring is fine.
"""
import re
from types import MappingProxyType
from typing import NamedTuple


class StageTemplate(NamedTuple):
    keywords: tuple
    phrases: tuple


# Stage 0 is canvassing, 1-7 are follow-up days. Loaded once, never mutated.
STAGE_TEMPLATES = MappingProxyType({
    0: StageTemplate(
        keywords=("perkenalkan", "bhanu", "stiqr", "qris", "kasir", "aplikasi", "gratis", "mdr", "0%", "umkm"),
        phrases=(
            "perkenalkan aku bhanu",
            "qris yang sudah include",
            "aplikasi kasirnya",
            "gratis tanpa biaya langganan",
        ),
    ),
    1: StageTemplate(
        keywords=(
            "day 1", "*day 1*", "2026", "biaya operasional", "f&b", "inflasi", "bahan pokok",
            "efisien", "rapiin transaksi", "masuk 2026", "operasional f&b",
        ),
        phrases=(
            "masuk 2026 nanti",
            "biaya operasional f&b",
            "biaya operasional f&b makin naik",
            "rapiin transaksi tanpa biaya langganan",
            "kirim nama usaha + nomor whatsapp",
            "tau nggak",
            "masuk 2026 nanti, biaya operasional",
        ),
    ),
    2: StageTemplate(
        keywords=(
            "day 2", "*day 2*", "jutaan per tahun", "kasir dan qris", "ekosistem digital",
            "lebih ringan", "kebebanan biaya",
        ),
        phrases=(
            "bayar jutaan per tahun",
            "2026 itu eranya ekosistem digital",
            "dibuat khusus untuk umkm",
            "kirim nama usaha + nomor whatsapp",
        ),
    ),
    3: StageTemplate(
        keywords=(
            "day 3", "*day 3*", "struk wa", "otomatis", "pembeli balik lagi",
            "support itu tanpa ribet", "demo",
        ),
        phrases=("struk wa otomatis", "pembeli balik lagi", "support itu tanpa ribet", 'balas "demo"'),
    ),
    4: StageTemplate(
        keywords=(
            "day 4", "*day 4*", "siapin akun", "barengan sama qris", "bandingkan terlebih dahulu", "coba",
        ),
        phrases=("siapin akun stiqr", "barengan sama qris atau pos", "bandingkan terlebih dahulu", 'balas "coba"'),
    ),
    5: StageTemplate(
        keywords=(
            "day 5", "*day 5*", "jali-jali festival", "event", "exposure event", "peluang baru", "info event",
        ),
        phrases=("jali-jali festival", "exposure event", "buka peluang baru", 'balas "info event"'),
    ),
    6: StageTemplate(
        keywords=("day 6", "*day 6*", "pindah ke sistem", "pos lama", "2025–2026", "fokus bantu umkm"),
        phrases=("pindah ke sistem yang lebih efisien", "biaya pos lama", "2025–2026", "fokus bantu umkm"),
    ),
    7: StageTemplate(
        keywords=(
            "day 7", "*day 7*", "ekosistem umkm", "bergerak cepat", "digital yang lebih murah",
            "tetap berkembang", "ready",
        ),
        phrases=(
            "ekosistem umkm lagi bergerak cepat",
            "digital yang lebih murah dan simpel",
            "tetap berkembang",
            'balas "ready"',
        ),
    ),
})

KEYWORD_POINTS = 2
PHRASE_POINTS = 5
DAY_MARKER_POINTS = 10

DETECTION_THRESHOLD = 5
VALIDATION_THRESHOLD = 3


class TemplateValidation:
    """Outcome of checking a message against the expected stage's template."""

    def __init__(
        self,
        valid: bool,
        score: int,
        expected_stage: int,
        detected_stage: int | None,
        found_keywords: list[str],
        found_phrases: list[str],
    ):
        self.valid = valid
        self.score = score
        self.expected_stage = expected_stage
        self.detected_stage = detected_stage
        self.found_keywords = found_keywords
        self.found_phrases = found_phrases

    def to_dict(self) -> dict:
        return self.__dict__


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").lower())


def _day_marker(stage: int) -> re.Pattern:
    # "day 3", "*Day 3*", "DAY3"; the trailing \b keeps "day 1" from matching "day 12"
    return re.compile(r"\*?\s*day\s*" + str(stage) + r"\b\s*\*?", re.I)


class TemplateMatcher:
    """Scores free text against the per-stage message templates."""

    def __init__(self, templates: dict = None):
        self.templates = templates if templates is not None else STAGE_TEMPLATES

    def score_stage(self, text: str, stage: int) -> int:
        score, _, _ = self._score(_normalize(text), stage)
        return score

    def detect_stage(self, text: str) -> int | None:
        """
        Best-matching stage, or None if nothing reaches the detection threshold.
        Equal scores resolve to the stage seen first in template order.
        """
        normalized = _normalize(text)
        best_stage = None
        best_score = 0
        for stage in self.templates:
            score, _, _ = self._score(normalized, stage)
            if score > best_score:
                best_score = score
                best_stage = stage
        return best_stage if best_score >= DETECTION_THRESHOLD else None

    def validate_for_stage(self, text: str, expected_stage: int) -> TemplateValidation:
        normalized = _normalize(text)
        if expected_stage not in self.templates:
            return TemplateValidation(False, 0, expected_stage, None, [], [])

        score, keywords, phrases = self._score(normalized, expected_stage)
        return TemplateValidation(
            valid=score >= VALIDATION_THRESHOLD,
            score=score,
            expected_stage=expected_stage,
            detected_stage=self.detect_stage(normalized),
            found_keywords=keywords,
            found_phrases=phrases,
        )

    def _score(self, normalized: str, stage: int) -> tuple[int, list[str], list[str]]:
        template = self.templates.get(stage)
        if template is None:
            return 0, [], []

        found_keywords = [k for k in template.keywords if k.lower() in normalized]
        found_phrases = [p for p in template.phrases if p.lower() in normalized]

        score = KEYWORD_POINTS * len(found_keywords) + PHRASE_POINTS * len(found_phrases)
        if _day_marker(stage).search(normalized):
            score += DAY_MARKER_POINTS
        return score, found_keywords, found_phrases
