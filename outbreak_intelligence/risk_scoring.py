"""
Risk & Severity Scoring for Outbreak Clusters
Composite 0-100 risk score from member severity, cluster density and report recency
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

import numpy as np

from .exceptions import ComputationError
from .models import SeverityTier, SymptomReport

# Weights of the three factors; they sum to 100
SEVERITY_WEIGHT = 40
DENSITY_WEIGHT = 35
RECENTNESS_WEIGHT = 25

# Reports older than this contribute no recency
RECENCY_WINDOW_DAYS = 14

# Exclusive lower bounds of each tier
CRITICAL_THRESHOLD = 80
CONCERNING_THRESHOLD = 65
UNUSUAL_THRESHOLD = 45


@dataclass(frozen=True)
class RiskAssessment:
    """Risk score and tier for one cluster membership"""
    risk_score: float
    tier: SeverityTier
    avg_severity: float
    avg_age_days: float


def classify_tier(risk_score: float) -> SeverityTier:
    """Map a risk score onto a severity tier"""
    if risk_score > CRITICAL_THRESHOLD:
        return SeverityTier.CRITICAL
    if risk_score > CONCERNING_THRESHOLD:
        return SeverityTier.CONCERNING
    if risk_score > UNUSUAL_THRESHOLD:
        return SeverityTier.UNUSUAL
    return SeverityTier.NORMAL


class RiskScorer:
    """
    Scores cluster membership

    riskScore = min(100, severity*40 + density*35 + recentness*25) where
    severity = avg severity / 10, density = log10(member count) and
    recentness = clamp(1 - avg age in days / 14, 0, 1).

    The score is a pure function of the member set: member order and
    anything outside the members never affects it.
    """

    def score(self, members: Sequence[SymptomReport], now: datetime) -> RiskAssessment:
        """
        Score a cluster's members

        Args:
            members: Reports in the cluster (at least one)
            now: Reference time for report ages

        Returns:
            RiskAssessment with the score and its tier
        """
        if not members:
            raise ComputationError("risk_scoring", "cannot score an empty cluster")

        # exactly rounded sums: member order cannot change the means
        count = len(members)
        avg_severity = math.fsum(r.severity for r in members) / count
        avg_age_days = math.fsum(
            (now - r.created_at).total_seconds() / 86400 for r in members
        ) / count

        severity_factor = avg_severity / 10
        density_factor = float(np.log10(count))
        recentness_factor = float(np.clip(1 - avg_age_days / RECENCY_WINDOW_DAYS, 0, 1))

        risk_score = min(
            100.0,
            severity_factor * SEVERITY_WEIGHT
            + density_factor * DENSITY_WEIGHT
            + recentness_factor * RECENTNESS_WEIGHT
        )

        if not np.isfinite(risk_score):
            raise ComputationError("risk_scoring", f"non-finite risk score {risk_score}")

        return RiskAssessment(
            risk_score=risk_score,
            tier=classify_tier(risk_score),
            avg_severity=avg_severity,
            avg_age_days=avg_age_days
        )
