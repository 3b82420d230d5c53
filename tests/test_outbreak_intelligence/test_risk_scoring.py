"""
Tests for Risk & Severity Scoring
"""

import math
import random

import pytest

from outbreak_intelligence.exceptions import ComputationError
from outbreak_intelligence.models import SeverityTier
from outbreak_intelligence.risk_scoring import RiskScorer, classify_tier


@pytest.fixture
def scorer():
    return RiskScorer()


class TestRiskFormula:
    """Test the composite risk score"""

    def test_bangkok_sample(self, scorer, make_report, now):
        """Severities 8, 7, 9 aged 1, 2 and 0.5 days"""
        members = [
            make_report(severity=8, age_days=1.0),
            make_report(severity=7, age_days=2.0),
            make_report(severity=9, age_days=0.5),
        ]
        assessment = scorer.score(members, now)

        expected = 0.8 * 40 + math.log10(3) * 35 + (1 - (3.5 / 3) / 14) * 25
        assert assessment.risk_score == pytest.approx(expected)
        assert assessment.risk_score == pytest.approx(71.62, abs=0.01)
        assert assessment.tier == SeverityTier.CONCERNING
        assert assessment.avg_severity == 8.0

    def test_three_fresh_reports_stay_below_critical(self, scorer, make_report, now):
        """Three brand-new reports with severities 8, 7, 9 top out near 73.7"""
        members = [make_report(severity=s, age_days=0) for s in (8, 7, 9)]
        assessment = scorer.score(members, now)

        assert assessment.risk_score == pytest.approx(32 + math.log10(3) * 35 + 25)
        assert assessment.tier == SeverityTier.CONCERNING

    def test_single_member_has_zero_density(self, scorer, make_report, now):
        """log10(1) contributes nothing"""
        assessment = scorer.score([make_report(severity=10, age_days=0)], now)

        assert assessment.risk_score == pytest.approx(65.0)
        assert assessment.tier == SeverityTier.UNUSUAL

    def test_old_reports_lose_recency(self, scorer, make_report, now):
        """Reports older than 14 days contribute no recency"""
        members = [make_report(severity=5, age_days=20) for _ in range(10)]
        assessment = scorer.score(members, now)

        assert assessment.risk_score == pytest.approx(20 + 35)

    def test_score_is_capped_at_100(self, scorer, make_report, now):
        """Test min(100, ...)"""
        members = [make_report(severity=10, age_days=0) for _ in range(1000)]
        assert scorer.score(members, now).risk_score == 100.0

    def test_empty_membership_raises(self, scorer, now):
        """Test empty clusters cannot be scored"""
        with pytest.raises(ComputationError):
            scorer.score([], now)


class TestRiskProperties:
    """Test monotonicity and order independence"""

    def test_severity_monotonicity(self, scorer, make_report, now):
        """Raising severity with density and recency fixed never lowers the score"""
        previous = -1.0
        for severity in range(1, 11):
            members = [make_report(severity=severity, age_days=d) for d in (0, 1, 2, 3)]
            score = scorer.score(members, now).risk_score
            assert score >= previous
            previous = score

    def test_order_independence(self, scorer, make_report, now):
        """Shuffling members does not change the score"""
        members = [
            make_report(severity=(i % 10) + 1, age_days=i * 0.37) for i in range(25)
        ]
        baseline = scorer.score(members, now)

        rng = random.Random(7)
        for _ in range(5):
            shuffled = list(members)
            rng.shuffle(shuffled)
            assert scorer.score(shuffled, now) == baseline


class TestTierThresholds:
    """Test exclusive lower bounds"""

    @pytest.mark.parametrize("score,tier", [
        (80.0, SeverityTier.CONCERNING),
        (80.01, SeverityTier.CRITICAL),
        (65.0, SeverityTier.UNUSUAL),
        (65.5, SeverityTier.CONCERNING),
        (45.0, SeverityTier.NORMAL),
        (45.1, SeverityTier.UNUSUAL),
        (0.0, SeverityTier.NORMAL),
        (100.0, SeverityTier.CRITICAL),
    ])
    def test_classify_tier(self, score, tier):
        assert classify_tier(score) == tier
