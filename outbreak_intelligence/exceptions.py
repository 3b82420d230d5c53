"""
Exception hierarchy for the outbreak intelligence engine
"""


class OutbreakEngineError(Exception):
    """Base class for engine errors"""


class ValidationError(OutbreakEngineError, ValueError):
    """Malformed input rejected before any computation runs"""


class ComputationError(OutbreakEngineError):
    """Unexpected numeric failure inside a pipeline stage"""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage}: {message}")


class CacheUnavailableError(OutbreakEngineError):
    """Cache backend could not be reached; callers fall back to direct computation"""
