"""
Density-based Spatial Clustering of Symptom Reports
Groups geotagged reports into outbreak clusters using DBSCAN (or k-means for map views)
"""

import hashlib
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np
from sklearn.cluster import DBSCAN, KMeans

from .exceptions import ComputationError, ValidationError
from .models import (
    ClusteringAlgorithm,
    DistanceMetric,
    OutbreakCluster,
    RadiusMode,
    SymptomReport
)
from .risk_scoring import RiskScorer
from .utils import round_to, utcnow

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
METERS_PER_DEGREE = KM_PER_DEGREE * 1000


def cluster_radius(report_count: int, mode: RadiusMode = RadiusMode.DETECTION) -> float:
    """
    Display radius of a cluster in degrees

    Detection clusters grow with the square root of their size; map clusters
    escalate by 200 m per report from 1 km up to a 5 km cap.
    """
    if mode == RadiusMode.MAP:
        meters = min(1000 + report_count * 200, 5000)
        return meters / METERS_PER_DEGREE
    return max(0.1, float(np.sqrt(report_count)) * 0.2)


def dominant_symptoms(reports: Sequence[SymptomReport], top_k: int = 3) -> List[str]:
    """Most frequent symptom tags; equal counts keep first-seen order"""
    counts = Counter()
    for report in reports:
        counts.update(report.symptoms)
    return [symptom for symptom, _ in counts.most_common(top_k)]


class SpatialClusterer:
    """
    Groups symptom reports into outbreak clusters

    One clustering contract serves both the periodic outbreak detection run
    (coarse ~0.5 degree neighbourhood) and the live map view (fine
    neighbourhood, size-escalated radius, optional k-means).
    """

    def __init__(
        self,
        risk_scorer: Optional[RiskScorer] = None,
        metric: DistanceMetric = DistanceMetric.HAVERSINE,
        kmeans_clusters: int = 10,
        random_state: int = 42
    ):
        """
        Initialize spatial clusterer

        Args:
            risk_scorer: Scorer applied to every finished cluster
            metric: Neighbour distance (haversine degrees or planar degrees)
            kmeans_clusters: Number of partitions when k-means is selected
            random_state: Seed for k-means centroid initialisation
        """
        self.risk_scorer = risk_scorer or RiskScorer()
        self.metric = metric
        self.kmeans_clusters = kmeans_clusters
        self.random_state = random_state

    def cluster(
        self,
        reports: Sequence[SymptomReport],
        radius: float,
        min_points: int,
        algorithm: ClusteringAlgorithm = ClusteringAlgorithm.DBSCAN,
        radius_mode: RadiusMode = RadiusMode.DETECTION,
        now: Optional[datetime] = None
    ) -> List[OutbreakCluster]:
        """
        Cluster reports into outbreak clusters

        Args:
            reports: Reports to cluster, in a fixed order
            radius: Neighbour distance in degrees
            min_points: Minimum neighbourhood size, seed included
            algorithm: DBSCAN (default) or k-means
            radius_mode: Radius rule for the resulting clusters
            now: Reference time for recency and growth rate

        Returns:
            Clusters in order of discovery; noise reports are excluded
        """
        if radius <= 0:
            raise ValidationError(f"Cluster radius must be positive, got {radius}")
        if min_points < 1:
            raise ValidationError(f"min_points must be at least 1, got {min_points}")

        now = now or utcnow()
        reports = list(reports)

        if len(reports) < min_points:
            logger.info(
                f"{len(reports)} reports is below min_points={min_points}; no clusters"
            )
            return []

        try:
            if algorithm == ClusteringAlgorithm.KMEANS:
                labels = self._kmeans_labels(reports)
            else:
                labels = self._dbscan_labels(reports, radius, min_points)
        except (ValueError, FloatingPointError) as e:
            raise ComputationError("clustering", str(e))

        groups: Dict[int, List[SymptomReport]] = {}
        for report, label in zip(reports, labels):
            if label == -1:  # noise
                continue
            groups.setdefault(int(label), []).append(report)

        clusters = []
        for members in groups.values():
            if len(members) < min_points:
                continue
            clusters.append(self._build_cluster(members, radius_mode, now))

        logger.info(
            f"Clustered {len(reports)} reports into {len(clusters)} clusters "
            f"({algorithm.value}, radius={radius}, min_points={min_points})"
        )
        return clusters

    def _coordinates(self, reports: Sequence[SymptomReport]) -> np.ndarray:
        return np.array([[r.latitude, r.longitude] for r in reports], dtype=float)

    def _dbscan_labels(
        self,
        reports: Sequence[SymptomReport],
        radius: float,
        min_points: int
    ) -> np.ndarray:
        """DBSCAN labels; points are expanded in input order so labels are reproducible"""
        coords = self._coordinates(reports)

        if self.metric == DistanceMetric.HAVERSINE:
            # degrees -> km (1 degree ~ 111 km) -> radians on the unit sphere
            eps = radius * KM_PER_DEGREE / EARTH_RADIUS_KM
            clustering = DBSCAN(eps=eps, min_samples=min_points, metric='haversine')
            return clustering.fit_predict(np.radians(coords))

        clustering = DBSCAN(eps=radius, min_samples=min_points, metric='euclidean')
        return clustering.fit_predict(coords)

    def _kmeans_labels(self, reports: Sequence[SymptomReport]) -> np.ndarray:
        """k-means partition with a fixed seed; renumbered by first member index"""
        coords = self._coordinates(reports)
        n_clusters = max(1, min(self.kmeans_clusters, len(reports)))

        kmeans = KMeans(n_clusters=n_clusters, random_state=self.random_state, n_init=10)
        raw_labels = kmeans.fit_predict(coords)

        renumbered: Dict[int, int] = {}
        labels = np.empty(len(raw_labels), dtype=int)
        for i, label in enumerate(raw_labels):
            labels[i] = renumbered.setdefault(int(label), len(renumbered))
        return labels

    def _build_cluster(
        self,
        members: List[SymptomReport],
        radius_mode: RadiusMode,
        now: datetime
    ) -> OutbreakCluster:
        """Create OutbreakCluster once membership is final"""
        count = len(members)
        center_lat = float(np.mean([r.latitude for r in members]))
        center_lng = float(np.mean([r.longitude for r in members]))

        assessment = self.risk_scorer.score(members, now)

        oldest = min(r.created_at for r in members)
        days_since_first = (now - oldest).total_seconds() / 86400
        growth_rate = count / max(1.0, days_since_first)

        member_ids = tuple(r.id for r in members)
        digest = hashlib.sha1("|".join(sorted(member_ids)).encode("utf-8")).hexdigest()[:12]

        location_name = members[0].location_city or f"{center_lat:.4f}, {center_lng:.4f}"

        return OutbreakCluster(
            id=f"cluster_{digest}",
            center_lat=center_lat,
            center_lng=center_lng,
            radius=cluster_radius(count, radius_mode),
            report_count=count,
            dominant_symptoms=tuple(dominant_symptoms(members)),
            severity=assessment.tier,
            risk_score=round_to(assessment.risk_score, 2),
            growth_rate=round_to(growth_rate, 2),
            location_name=location_name,
            first_detected=now,
            avg_severity=round_to(assessment.avg_severity, 2),
            member_ids=member_ids
        )
