"""
Concurrent per-radio scans with live progress feedback
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from discovery.models import Device
from discovery.probe import HttpProbe
from errors import ProbeError, RadioProbeError
from timing import progress_curve
from .models import ScanReport, ScanResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]

def _now_ms() -> float:
    return time.perf_counter() * 1000


class ScanCoordinator:
    """Scans every radio of a device at once, reporting estimated progress per radio.

    A radio whose probe fails is reported in ScanReport.failures; its siblings
    still complete and their results are returned.
    """

    def __init__(self, probe: HttpProbe, config: Optional[Dict] = None,
                 clock: Callable[[], float] = _now_ms):
        config = config or {}
        self.probe = probe
        self.clock = clock
        self.progress_interval = config.get('progress_interval_ms', 50) / 1000
        self.default_duration = config.get('default_duration_ms', 5000)
        self.scan_timeout = config.get('scan_timeout', 60)

    async def scan(self, device: Device, on_progress: Optional[ProgressCallback] = None) -> ScanReport:
        start = self.clock()
        names = device.radio_names()

        def report(radio: str, value: float):
            if on_progress is None:
                return
            try:
                on_progress(radio, value)
            except Exception as e:
                logger.error(f"Progress callback failed for radio {radio}: {e}")

        async def tick(radio: str, curve: Callable[[float], float]):
            while True:
                await asyncio.sleep(self.progress_interval)
                report(radio, curve(self.clock() - start))

        async def scan_radio(radio: str) -> ScanResult:
            curve = progress_curve(device.calibration.history_of(radio), self.default_duration)
            report(radio, 0.0)
            timer = asyncio.create_task(tick(radio, curve))
            try:
                data = await self.probe.get_json(f"{device.host}/cgi-bin/scan/{radio}", self.scan_timeout)
                duration = self.clock() - start
                if not isinstance(data, dict):
                    raise ProbeError(f"{device.host}/cgi-bin/scan/{radio}", "expected a JSON object")
                device.calibration.record(radio, duration)
            except ProbeError as e:
                raise RadioProbeError(radio, e.reason) from e
            finally:
                timer.cancel()

            report(radio, 1.0)
            measurements = data.get('results') or []
            if not isinstance(measurements, list):
                measurements = [measurements]
            logger.debug(f"Radio {radio} returned {len(measurements)} measurements in {duration:.0f} ms")
            return ScanResult(radio=radio, measurements=measurements, duration_ms=duration)

        logger.info(f"[SCAN] Scanning {len(names)} radios on {device.host}")
        results = await asyncio.gather(*(scan_radio(n) for n in names), return_exceptions=True)

        scan_report = ScanReport()
        for name, result in zip(names, results):
            if isinstance(result, ScanResult):
                scan_report.results.append(result)
            elif isinstance(result, RadioProbeError):
                logger.warning(f"Scan of radio {name} failed: {result.reason}")
                scan_report.failures[name] = result
            elif isinstance(result, asyncio.CancelledError):
                raise result
            else:
                logger.error(f"Unexpected scan error on radio {name}: {result}")
                scan_report.failures[name] = RadioProbeError(name, str(result))

        logger.info(f"[SCAN] Scan complete: {len(scan_report.results)} radios ok, "
                    f"{len(scan_report.failures)} failed")
        return scan_report
