import pytest

from timecapsule.aggregator import (
    MOSTLY_POSITIVE,
    NEUTRAL,
    QUITE_NEGATIVE,
    SLIGHTLY_NEGATIVE,
    VERY_POSITIVE,
    classify_mood,
    summarize,
)


class TestClassifyMood:
    @pytest.mark.parametrize("average,label", [
        (3.0, VERY_POSITIVE),
        (0.51, VERY_POSITIVE),
        (0.5, MOSTLY_POSITIVE),
        (0.01, MOSTLY_POSITIVE),
        (0, NEUTRAL),
        (0.0, NEUTRAL),
        (-0.01, SLIGHTLY_NEGATIVE),
        (-0.5, SLIGHTLY_NEGATIVE),
        (-0.51, QUITE_NEGATIVE),
        (-4, QUITE_NEGATIVE),
    ])
    def test_boundaries(self, average, label):
        assert classify_mood(average) == label


class TestSummarize:
    def test_empty_capsule_is_neutral(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.average == 0
        assert summary.count == 0
        assert summary.mood == NEUTRAL

    def test_single_score(self):
        summary = summarize([3])
        assert summary.total == 3
        assert summary.average == 3.0
        assert summary.mood == VERY_POSITIVE

    def test_zero_scores_pull_average_toward_neutral(self):
        # one positive text plus three media items scored 0
        summary = summarize([2, 0, 0, 0])
        assert summary.average == 0.5
        assert summary.mood == MOSTLY_POSITIVE

    def test_mixed_scores_cancel_out(self):
        summary = summarize([3, -3])
        assert summary.total == 0
        assert summary.mood == NEUTRAL
