"""
Discovery data structures and models
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from timing import CalibrationSet


def normalize_host(host: str) -> str:
    """Hosts without a scheme are reached over plain HTTP"""
    host = host.strip().rstrip('/')
    if '://' not in host:
        host = f"http://{host}"
    return host

def display_host(host: str) -> str:
    """Host without its scheme, for labels"""
    idx = host.find('://')
    return host if idx == -1 else host[idx + 3:]


@dataclass
class Device:
    """The AP currently bound by the client"""
    host: str
    model: str
    calibration: CalibrationSet

    @property
    def radios(self) -> Dict[str, List[float]]:
        """radio name -> observed round-trip durations (ms)"""
        return self.calibration.snapshot()

    def radio_names(self) -> List[str]:
        return self.calibration.radio_names()


@dataclass
class DiscoveryAttempt:
    """State of one discovery effort, which may span several host lists"""
    candidate_hosts: List[str] = field(default_factory=list)
    current_index: int = 0
    round_count: int = 0

    def start_round(self, hosts: List[str]):
        self.candidate_hosts = list(hosts)
        self.current_index = 0

    def exhausted(self) -> int:
        """A whole candidate list failed; returns the new round count"""
        self.round_count += 1
        return self.round_count

    @property
    def current_host(self) -> Optional[str]:
        if 0 <= self.current_index < len(self.candidate_hosts):
            return self.candidate_hosts[self.current_index]
        return None


class StepStatus(Enum):
    """Status of a discovery step"""
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DiscoveryStep:
    """Progress event emitted while contacting an AP"""
    step_id: str
    label: str
    status: StepStatus
    error: Optional[str] = None
