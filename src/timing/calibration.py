"""
Per-radio round-trip history of the bound AP
"""

from typing import Dict, Iterable, List, Set


class CalibrationSet:
    """Maps each radio name to its ordered list of observed durations (ms).

    The radio set is fixed at construction. Histories are append-only.
    Recording happens on the event loop thread only, so concurrent probes
    for different radios never interleave inside a single append.
    """

    def __init__(self, radios: Iterable[str]):
        self._histories: Dict[str, List[float]] = {name: [] for name in radios}

    def record(self, radio: str, duration: float) -> None:
        if radio not in self._histories:
            raise KeyError(f"Unknown radio: {radio}")
        self._histories[radio].append(float(duration))

    def history_of(self, radio: str) -> List[float]:
        return list(self._histories[radio])

    def radios(self) -> Set[str]:
        return set(self._histories)

    def radio_names(self) -> List[str]:
        """Radio names in enumeration order"""
        return list(self._histories)

    def snapshot(self) -> Dict[str, List[float]]:
        return {name: list(h) for name, h in self._histories.items()}

    def __len__(self) -> int:
        return len(self._histories)
