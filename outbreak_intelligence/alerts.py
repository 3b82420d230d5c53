"""
Health Alert Generation
Projects high-risk outbreak clusters onto actionable health alerts
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .models import AlertLevel, HealthAlert, OutbreakCluster, SeverityTier
from .utils import utcnow

logger = logging.getLogger(__name__)

RECOMMENDED_ACTIONS = (
    "Deploy field investigation team",
    "Increase local surveillance",
    "Prepare containment measures",
    "Alert regional health authorities",
)


class AlertGenerator:
    """Creates one HealthAlert per critical or high-risk cluster"""

    def __init__(self, risk_threshold: float = 75, ttl_hours: int = 72):
        """
        Args:
            risk_threshold: Clusters scoring strictly above this raise an alert
            ttl_hours: Hours until a generated alert expires
        """
        self.risk_threshold = risk_threshold
        self.ttl_hours = ttl_hours

    def should_alert(self, cluster: OutbreakCluster) -> bool:
        return cluster.severity == SeverityTier.CRITICAL or cluster.risk_score > self.risk_threshold

    def generate_alerts(
        self,
        clusters: Sequence[OutbreakCluster],
        now: Optional[datetime] = None
    ) -> List[HealthAlert]:
        """Alerts for qualifying clusters, in cluster order"""
        now = now or utcnow()
        alerts = [self._build_alert(c, now) for c in clusters if self.should_alert(c)]

        for alert in alerts:
            logger.warning(f"ALERT [{alert.alert_level.value.upper()}] {alert.title}")
        return alerts

    def _build_alert(self, cluster: OutbreakCluster, now: datetime) -> HealthAlert:
        alert_level = (
            AlertLevel.CRITICAL if cluster.severity == SeverityTier.CRITICAL else AlertLevel.HIGH
        )
        generation = cluster.generation if cluster.generation is not None else 0

        return HealthAlert(
            id=f"alert_{cluster.id}_{generation}",
            cluster_id=cluster.id,
            alert_level=alert_level,
            title=f"Potential Disease Cluster Detected in {cluster.location_name}",
            description=(
                f"AI surveillance has detected {cluster.report_count} similar symptom "
                f"reports in {cluster.location_name}. Dominant symptoms: "
                f"{', '.join(cluster.dominant_symptoms)}. "
                f"Risk Score: {cluster.risk_score}/100."
            ),
            affected_regions=(cluster.location_name,),
            estimated_impact=(
                f"{cluster.report_count} reported cases, "
                f"growth rate: {cluster.growth_rate} cases/day"
            ),
            recommended_actions=RECOMMENDED_ACTIONS,
            created_at=now,
            expires_at=now + timedelta(hours=self.ttl_hours)
        )
