"""
Z-Score Anomaly Detection over Outbreak Clusters
Flags clusters whose metric deviates from the population of clusters
"""

import hashlib
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from .exceptions import ValidationError
from .models import (
    Anomaly,
    AnomalySeverity,
    AnomalyType,
    ClusterMetric,
    OutbreakCluster
)
from .utils import round_to, utcnow

logger = logging.getLogger(__name__)

METRIC_TYPES: Dict[ClusterMetric, AnomalyType] = {
    ClusterMetric.REPORT_COUNT: AnomalyType.SPATIAL,
    ClusterMetric.GROWTH_RATE: AnomalyType.TEMPORAL,
    ClusterMetric.AVG_SEVERITY: AnomalyType.SEVERITY,
    ClusterMetric.RISK_SCORE: AnomalyType.PATTERN,
}

RECOMMENDATIONS: Dict[AnomalyType, List[str]] = {
    AnomalyType.SPATIAL: [
        "Investigate local transmission sources",
        "Increase sampling in the affected area",
    ],
    AnomalyType.TEMPORAL: [
        "Review reporting timeline for a rapid onset",
        "Check for a common exposure event",
    ],
    AnomalyType.SEVERITY: [
        "Verify clinical severity with local facilities",
        "Prioritise laboratory confirmation",
    ],
    AnomalyType.PATTERN: [
        "Compare symptom profile against known syndromes",
        "Escalate for epidemiologist review",
    ],
}


def metric_value(cluster: OutbreakCluster, metric: ClusterMetric) -> float:
    return float(getattr(cluster, metric.value))


class ZScoreAnomalyDetector:
    """
    Population z-score detector

    z = (value - mean) / std with std the population standard deviation
    (ddof=0). Elements with |z| > threshold are anomalies.
    """

    def __init__(self, min_elements: int = 3):
        self.min_elements = min_elements

    def classify_severity(self, abs_z: float, threshold: float) -> AnomalySeverity:
        if abs_z >= threshold * 2:
            return AnomalySeverity.CRITICAL
        if abs_z >= threshold * 1.5:
            return AnomalySeverity.HIGH
        if abs_z >= threshold * 1.25:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW

    def detect_anomalies(
        self,
        clusters: Sequence[OutbreakCluster],
        threshold: float = 2.0,
        metric: ClusterMetric = ClusterMetric.REPORT_COUNT,
        now: Optional[datetime] = None
    ) -> List[Anomaly]:
        """
        Detect clusters whose metric is a statistical outlier

        Args:
            clusters: Population of clusters
            threshold: |z| above which a cluster is anomalous
            metric: Cluster metric to test

        Returns:
            Anomalies in cluster order; empty for fewer than three clusters
            or when every value is equal
        """
        if threshold <= 0:
            raise ValidationError(f"Anomaly threshold must be positive, got {threshold}")

        if len(clusters) < self.min_elements:
            return []

        values = np.array([metric_value(c, metric) for c in clusters], dtype=float)
        mean = float(np.mean(values))
        std = float(np.std(values))

        if values.size == 0 or np.all(values == values[0]) or not np.isfinite(std):
            return []

        now = now or utcnow()
        anomaly_type = METRIC_TYPES[metric]
        anomalies = []

        for cluster, value in zip(clusters, values):
            z_score = (value - mean) / std
            abs_z = abs(z_score)
            if abs_z <= threshold:
                continue

            direction = "above" if z_score > 0 else "below"
            digest = hashlib.sha1(f"{cluster.id}|{metric.value}".encode("utf-8")).hexdigest()[:12]

            anomalies.append(
                Anomaly(
                    id=f"anomaly_{digest}",
                    type=anomaly_type,
                    severity=self.classify_severity(abs_z, threshold),
                    description=(
                        f"{metric.value.replace('_', ' ').capitalize()} of {value:g} in "
                        f"{cluster.location_name} is {abs_z:.2f} standard deviations "
                        f"{direction} the mean of {mean:.2f}"
                    ),
                    latitude=cluster.center_lat,
                    longitude=cluster.center_lng,
                    location_name=cluster.location_name,
                    metric=metric,
                    value=float(value),
                    z_score=round_to(z_score, 4),
                    confidence=round_to(min(0.99, abs_z / (threshold * 2)), 4),
                    detected_at=now,
                    recommendations=tuple(RECOMMENDATIONS[anomaly_type]),
                    cluster_id=cluster.id
                )
            )

        if anomalies:
            logger.info(
                f"{len(anomalies)} {metric.value} anomalies among {len(clusters)} clusters"
            )
        return anomalies

    def detect_all_metrics(
        self,
        clusters: Sequence[OutbreakCluster],
        threshold: float = 2.0,
        metrics: Optional[Sequence[ClusterMetric]] = None,
        now: Optional[datetime] = None
    ) -> List[Anomaly]:
        """Run detection for each metric and concatenate the results in metric order"""
        now = now or utcnow()
        anomalies: List[Anomaly] = []
        for metric in metrics or list(ClusterMetric):
            anomalies.extend(self.detect_anomalies(clusters, threshold, metric, now))
        return anomalies
