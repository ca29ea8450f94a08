"""
Scan data structures
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from errors import RadioProbeError


@dataclass
class ScanResult:
    """Measurements reported by one radio"""
    radio: str
    measurements: List[Any]
    duration_ms: float = 0.0


@dataclass
class ScanReport:
    """Outcome of one scan pass over every radio"""
    results: List[ScanResult] = field(default_factory=list)
    failures: Dict[str, RadioProbeError] = field(default_factory=dict)

    def measurements(self) -> List[Any]:
        """All radios' measurements flattened, in radio enumeration order"""
        flat = []
        for result in self.results:
            flat.extend(result.measurements)
        return flat

    @property
    def succeeded(self) -> bool:
        return bool(self.results)
