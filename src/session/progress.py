"""
Named progress steps shown to the operator while connecting and calibrating
"""

import time
from typing import Dict, List, Optional

from discovery.models import DiscoveryStep, StepStatus


class ProgressBoard:
    """Ordered set of named steps, each in progress, completed or failed"""

    def __init__(self):
        self._steps: Dict[str, Dict] = {}

    def start(self, step_id: str, label: str):
        # Re-opening a step moves it to the end, like a freshly added entry
        self._steps.pop(step_id, None)
        self._steps[step_id] = {
            "step_id": step_id,
            "label": label,
            "status": StepStatus.IN_PROGRESS.value,
            "error": None,
            "updated_at": time.time(),
        }

    def complete(self, step_id: str):
        self._set(step_id, StepStatus.COMPLETED)

    def fail(self, step_id: str, error: Optional[str] = None):
        self._set(step_id, StepStatus.FAILED, error)

    def _set(self, step_id: str, status: StepStatus, error: Optional[str] = None):
        step = self._steps.get(step_id)
        if step is None:
            step = {"step_id": step_id, "label": step_id, "error": None}
            self._steps[step_id] = step
        step["status"] = status.value
        step["error"] = error
        step["updated_at"] = time.time()

    def apply(self, step: DiscoveryStep):
        """Apply a step event emitted by discovery"""
        if step.status is StepStatus.IN_PROGRESS:
            self.start(step.step_id, step.label)
        elif step.status is StepStatus.COMPLETED:
            self.complete(step.step_id)
        else:
            self.fail(step.step_id, step.error)

    def status_of(self, step_id: str) -> Optional[str]:
        step = self._steps.get(step_id)
        return step["status"] if step else None

    def steps(self) -> List[Dict]:
        return [dict(s) for s in self._steps.values()]
