"""
Result Publishing Boundary
The engine hands detection results and new alerts to a publisher; delivery is the host's job
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Tuple

from .models import HealthAlert
from .schemas import DetectionResult

logger = logging.getLogger(__name__)


class ResultPublisher(ABC):
    """Port to the notification/transport collaborator"""

    @abstractmethod
    def publish_detection(self, result: DetectionResult) -> None:
        """A detection run replaced the active cluster set"""

    @abstractmethod
    def publish_alert(self, alert: HealthAlert) -> None:
        """A new health alert was created"""


class LoggingPublisher(ResultPublisher):
    """Default publisher: writes events to the log"""

    def publish_detection(self, result: DetectionResult) -> None:
        logger.info(
            f"Detection published: generation={result.generation} "
            f"clusters={result.clusters_found} critical={result.critical_count} "
            f"concerning={result.concerning_count}"
        )

    def publish_alert(self, alert: HealthAlert) -> None:
        logger.info(f"Alert published: {alert.id} ({alert.alert_level.value}) {alert.title}")


class InMemoryPublisher(ResultPublisher):
    """Records published events in order"""

    def __init__(self):
        self.events: List[Tuple[str, object]] = []
        self._lock = threading.Lock()

    def publish_detection(self, result: DetectionResult) -> None:
        with self._lock:
            self.events.append(("detection", result))

    def publish_alert(self, alert: HealthAlert) -> None:
        with self._lock:
            self.events.append(("alert", alert))

    @property
    def detections(self) -> List[DetectionResult]:
        return [payload for kind, payload in self.events if kind == "detection"]

    @property
    def alerts(self) -> List[HealthAlert]:
        return [payload for kind, payload in self.events if kind == "alert"]
