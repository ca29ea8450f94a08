"""
AP discovery: host fallback, two-step handshake and per-radio calibration
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from errors import (
    AllHostsFailedError, DiscoveryError, HostUnreachableError, ProbeError,
    RadioListError, RadioProbeError,
)
from timing import CalibrationSet
from .models import Device, DiscoveryAttempt, DiscoveryStep, StepStatus, display_host, normalize_host
from .probe import HttpProbe

logger = logging.getLogger(__name__)

def _now_ms() -> float:
    return time.perf_counter() * 1000


class ApDiscovery:
    """Finds and calibrates the AP the client measures with"""

    def __init__(self, probe: HttpProbe, config: Optional[Dict] = None,
                 clock: Callable[[], float] = _now_ms):
        config = config or {}
        self.probe = probe
        self.clock = clock
        self.request_timeout = config.get('request_timeout', 5)
        self.scan_timeout = config.get('scan_timeout', 60)
        self.progress_callbacks: List[Callable[[DiscoveryStep], None]] = []

        # Radio probe failures of the last calibration round, for observability
        self.calibration_errors: Dict[str, RadioProbeError] = {}

    def add_progress_callback(self, callback: Callable[[DiscoveryStep], None]):
        """Add callback for step updates"""
        self.progress_callbacks.append(callback)

    def _emit(self, step_id: str, label: str, status: StepStatus, error: Optional[str] = None):
        step = DiscoveryStep(step_id=step_id, label=label, status=status, error=error)
        for callback in self.progress_callbacks:
            try:
                callback(step)
            except Exception as e:
                logger.error(f"Progress callback failed for {step_id}: {e}")

    # ================== SINGLE HOST ==================

    async def discover(self, host: str) -> Device:
        """
        Handshake with one host and calibrate its radios.
        Raises HostUnreachableError or RadioListError.
        """
        host = normalize_host(host)
        connect_step = f"connect-ap-{host}"
        self._emit(connect_step, f"Contacting {display_host(host)}", StepStatus.IN_PROGRESS)

        # Step 1: capability query
        try:
            info = await self.probe.get_json(f"{host}/cgi-bin/info", self.request_timeout)
            if not isinstance(info, dict) or 'model' not in info:
                raise ProbeError(f"{host}/cgi-bin/info", "no model field")
        except ProbeError as e:
            self._emit(connect_step, f"Contacting {display_host(host)}", StepStatus.FAILED, e.reason)
            raise HostUnreachableError(host, e.reason) from e

        model = str(info['model'])
        self._emit('list-radios', "Listing radios", StepStatus.IN_PROGRESS)
        self._emit(connect_step, f"Contacting {display_host(host)}", StepStatus.COMPLETED)

        # Step 2: radio enumeration
        try:
            listing = await self.probe.get_json(f"{host}/cgi-bin/list", self.request_timeout)
            if not isinstance(listing, dict):
                raise ProbeError(f"{host}/cgi-bin/list", "expected a JSON object")
        except ProbeError as e:
            self._emit('list-radios', "Listing radios", StepStatus.FAILED, e.reason)
            raise RadioListError(host, e.reason) from e

        device = Device(host=host, model=model, calibration=CalibrationSet(listing.keys()))
        self._emit('list-radios', "Listing radios", StepStatus.COMPLETED)
        logger.info(f"[SEARCH] AP {model} at {host} exposes radios: {device.radio_names()}")

        # Step 3: one calibration round per radio
        await self.calibrate(device)
        return device

    async def calibrate(self, device: Device) -> Dict[str, RadioProbeError]:
        """Probe every radio once and record its latency. Returns per-radio failures."""
        start = self.clock()

        async def calibrate_radio(name: str):
            step_id = f"calibrate-radio-{name}"
            self._emit(step_id, f"Calibrating {name}", StepStatus.IN_PROGRESS)
            try:
                await self.probe.get_raw(f"{device.host}/cgi-bin/scan/{name}", self.scan_timeout)
            except ProbeError as e:
                self._emit(step_id, f"Calibrating {name}", StepStatus.FAILED, e.reason)
                raise RadioProbeError(name, e.reason) from e
            device.calibration.record(name, self.clock() - start)
            self._emit(step_id, f"Calibrating {name}", StepStatus.COMPLETED)

        names = device.radio_names()
        results = await asyncio.gather(*(calibrate_radio(n) for n in names), return_exceptions=True)

        failures = {}
        for name, result in zip(names, results):
            if isinstance(result, RadioProbeError):
                failures[name] = result
                logger.warning(f"Calibration of radio {name} failed: {result.reason}")
            elif isinstance(result, BaseException):
                failures[name] = RadioProbeError(name, str(result))
                logger.error(f"Unexpected calibration error on radio {name}: {result}")

        self.calibration_errors = failures
        logger.info(f"Calibration complete on {device.host}: "
                    f"{len(names) - len(failures)}/{len(names)} radios calibrated")
        return failures

    # ================== FALLBACK ==================

    async def discover_with_fallback(self, hosts: List[str],
                                     attempt: Optional[DiscoveryAttempt] = None) -> Device:
        """
        Try hosts in order, stopping at the first success.
        Raises AllHostsFailedError when every host fails.
        """
        if attempt is not None:
            attempt.start_round(hosts)

        failures: Dict[str, DiscoveryError] = {}
        for index, host in enumerate(hosts):
            if attempt is not None:
                attempt.current_index = index
            try:
                device = await self.discover(host)
                logger.info(f"[SUCCESS] Bound AP {device.model} at {device.host}")
                return device
            except DiscoveryError as e:
                logger.info(f"Host {host} failed ({e}), trying next candidate")
                failures[host] = e

        logger.warning(f"All {len(hosts)} candidate hosts failed")
        raise AllHostsFailedError(hosts, failures)
