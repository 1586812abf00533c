"""
Tests for stage template scoring, detection and validation.
"""
import pytest

from canvassing.services.template_matcher import (
    DAY_MARKER_POINTS,
    STAGE_TEMPLATES,
    StageTemplate,
    TemplateMatcher,
)

CANVASSING = (
    "Halo kak, perkenalkan aku Bhanu dari STIQR. Ada QRIS yang sudah include "
    "aplikasi kasirnya, gratis tanpa biaya langganan dan MDR 0% untuk UMKM."
)
DAY_1 = "*Day 1* Tau nggak kak, masuk 2026 nanti, biaya operasional F&B makin naik karena inflasi bahan pokok."
DAY_3 = "*Day 3* Sekarang ada struk WA otomatis biar pembeli balik lagi. Support itu tanpa ribet, balas \"DEMO\" ya."


class TestScoreStage:

    def setup_method(self):
        self.matcher = TemplateMatcher()

    def test_canvassing_message_scores_all_keywords_and_phrases(self):
        # 10 keywords x 2 + 4 phrases x 5
        assert self.matcher.score_stage(CANVASSING, 0) == 40

    def test_day_marker_adds_bonus(self):
        assert self.matcher.score_stage("*Day 5*", 5) >= DAY_MARKER_POINTS
        assert self.matcher.score_stage("DAY5 hari ini", 5) >= DAY_MARKER_POINTS

    def test_day_marker_does_not_match_longer_number(self):
        # "day 1" is still a keyword substring of "day 12", but no marker bonus
        assert self.matcher.score_stage("day 12", 1) < DAY_MARKER_POINTS

    def test_whitespace_and_case_are_normalized(self):
        assert self.matcher.score_stage("PERKENALKAN   aku\n\nBHANU", 0) == self.matcher.score_stage(
            "perkenalkan aku bhanu", 0
        )

    def test_unknown_stage_scores_zero(self):
        assert self.matcher.score_stage(CANVASSING, 9) == 0


class TestDetectStage:

    def setup_method(self):
        self.matcher = TemplateMatcher()

    @pytest.mark.parametrize("text,stage", [(CANVASSING, 0), (DAY_1, 1), (DAY_3, 3)])
    def test_detects_best_stage(self, text, stage):
        assert self.matcher.detect_stage(text) == stage

    def test_below_threshold_is_none(self):
        assert self.matcher.detect_stage("oke kak makasih") is None

    def test_empty_text_is_none(self):
        assert self.matcher.detect_stage("") is None
        assert self.matcher.detect_stage(None) is None

    def test_ties_go_to_first_stage(self):
        templates = {
            2: StageTemplate(keywords=("sama",), phrases=("kata yang sama",)),
            5: StageTemplate(keywords=("sama",), phrases=("kata yang sama",)),
        }
        assert TemplateMatcher(templates).detect_stage("kata yang sama") == 2


class TestValidateForStage:

    def setup_method(self):
        self.matcher = TemplateMatcher()

    def test_matching_message_is_valid(self):
        result = self.matcher.validate_for_stage(DAY_3, 3)
        assert result.valid is True
        assert result.expected_stage == 3
        assert result.detected_stage == 3
        assert "struk wa otomatis" in result.found_phrases

    def test_earlier_days_message_fails_later_stage(self):
        # A day-3 upload that only carries the day-1 script
        result = self.matcher.validate_for_stage(DAY_1, 3)
        assert result.valid is False
        assert result.score < 3
        assert result.detected_stage == 1

    def test_unknown_stage_is_invalid(self):
        result = self.matcher.validate_for_stage(DAY_1, 8)
        assert result.valid is False
        assert result.score == 0
        assert result.detected_stage is None

    def test_to_dict(self):
        data = self.matcher.validate_for_stage(DAY_1, 1).to_dict()
        assert set(data) == {
            "valid", "score", "expected_stage", "detected_stage", "found_keywords", "found_phrases",
        }


def test_default_templates_are_read_only():
    assert sorted(STAGE_TEMPLATES) == list(range(8))
    with pytest.raises(TypeError):
        STAGE_TEMPLATES[8] = StageTemplate(keywords=(), phrases=())


def test_injected_templates_replace_defaults():
    matcher = TemplateMatcher({1: StageTemplate(keywords=("kopi",), phrases=("kopi susu",))})
    assert matcher.score_stage("Kopi susu gula aren", 1) == 7
    assert matcher.score_stage(CANVASSING, 0) == 0
