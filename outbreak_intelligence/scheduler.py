"""
Scheduled Outbreak Monitoring
Periodic re-scan of recent reports on a background thread
"""

import logging
import threading
from typing import Optional

from .engine import OutbreakDetectionEngine
from .schemas import DetectionResult

logger = logging.getLogger(__name__)


class DetectionScheduler:
    """Runs detect_outbreaks every `interval_seconds` until stopped"""

    def __init__(self, engine: OutbreakDetectionEngine, interval_seconds: float = 1800):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.runs = 0
        self.last_result: Optional[DetectionResult] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="outbreak-detection-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduled monitoring started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduled monitoring stopped")

    def run_once(self) -> Optional[DetectionResult]:
        """One detection run; failures are logged and the schedule continues"""
        try:
            self.last_result = self.engine.detect_outbreaks()
        except Exception as e:
            logger.exception(f"Scheduled detection run failed: {e}")
            return None
        finally:
            self.runs += 1
        return self.last_result

    def _loop(self):
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_seconds)
