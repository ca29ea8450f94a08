"""
Latest device position, fed by the spatial tracking subsystem
"""

import time
from typing import Dict, Optional


class PoseTracker:
    """Holds the most recent position. Stale positions count as unknown."""

    def __init__(self, max_age_seconds: Optional[float] = None):
        self.max_age = max_age_seconds
        self._position: Optional[Dict[str, float]] = None
        self._updated_at: Optional[float] = None

    def update(self, x: float, y: float, z: float):
        self._position = {"x": float(x), "y": float(y), "z": float(z)}
        self._updated_at = time.monotonic()

    def clear(self):
        self._position = None
        self._updated_at = None

    def current(self) -> Optional[Dict[str, float]]:
        if self._position is None:
            return None
        if self.max_age is not None and time.monotonic() - self._updated_at > self.max_age:
            return None
        return dict(self._position)
