"""
Session controller: binds backend commands to AP discovery and scanning

Connection state: CONNECTING -> ACTIVE (back to CONNECTING on channel loss).
Discovery state: NO_DEVICE -> DISCOVERING -> BOUND, or RETRY_REQUIRED once
the configured number of host lists has been exhausted. Only an explicit
retry_discovery() (or a fresh TRYL from the backend) leaves RETRY_REQUIRED.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from discovery import ApDiscovery, Device, DiscoveryAttempt
from errors import AllHostsFailedError, DiscoveryError, ScanBusyError
from scanning import ScanCoordinator, ScanReport
from .channel import CONNECTED, CONNECTION_LOST, CONNECTION_RESTORED, SessionChannel
from .progress import ProgressBoard
from .protocol import (
    CMD_DISP, CMD_HEAT, CMD_INIT, CMD_NOAP, CMD_RQHT, CMD_SCAN, CMD_TRYL, CMD_UUID,
)

logger = logging.getLogger(__name__)

DEFAULT_AP = 'http://ap.local'
NO_REACHABLE_AP = '<No reachable AP>'


class ConnectionState(Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"


class DiscoveryState(Enum):
    NO_DEVICE = "no_device"
    DISCOVERING = "discovering"
    BOUND = "bound"
    RETRY_REQUIRED = "retry_required"


@dataclass
class BroadcastMeasurement:
    """A measurement another participant submitted, relayed by the backend"""
    position: Dict[str, float]
    measurements: List[Any]
    received_at: float = field(default_factory=time.time)


@dataclass
class Heatmap:
    """Heatmap overlay for the map display"""
    svg: str
    bounding_box: Any
    received_at: float = field(default_factory=time.time)


class SessionController:
    """Owns the bound Device and reacts to backend commands"""

    def __init__(self, channel: SessionChannel, discovery: ApDiscovery, scanner: ScanCoordinator,
                 pose_source: Callable[[], Optional[Dict[str, float]]],
                 config: Optional[Dict] = None, identity: Optional[str] = None):
        config = config or {}
        self.channel = channel
        self.discovery = discovery
        self.scanner = scanner
        self.pose_source = pose_source
        self.default_host = config.get('default_host', DEFAULT_AP)
        self.max_rounds = config.get('max_rounds', 3)

        self.identity: Optional[str] = identity
        self.connection_state = ConnectionState.CONNECTING
        self.discovery_state = DiscoveryState.NO_DEVICE
        self.device: Optional[Device] = None
        self.attempt: Optional[DiscoveryAttempt] = None
        self.last_hosts: List[str] = []
        self.ap_label = NO_REACHABLE_AP

        self.progress = ProgressBoard()
        self.scan_progress: Dict[str, float] = {}
        self.measurements: List[BroadcastMeasurement] = []
        self.heatmap: Optional[Heatmap] = None

        self._discovery_task: Optional[asyncio.Task] = None
        self._scan_task: Optional[asyncio.Task] = None
        self._scanning = False
        self.skip_reason: Optional[str] = None
        self.event_callbacks: List[Callable[[str, Any], Any]] = []

        channel.set_handshake(self._handshake)
        channel.add_command_handler(self.handle_command)
        channel.add_status_callback(self._on_channel_status)
        discovery.add_progress_callback(self.progress.apply)

    def add_event_callback(self, callback: Callable[[str, Any], Any]):
        """Callback for identity / bound / retry-required / measurement / heatmap / scan-complete"""
        self.event_callbacks.append(callback)

    async def _emit(self, event: str, data: Any = None):
        for callback in self.event_callbacks:
            try:
                result = callback(event, data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Event callback failed for {event}: {e}")

    # ================== LIFECYCLE ==================

    async def start(self):
        """Connect to the backend and try the well-known AP"""
        logger.info("[LAUNCH] Starting session controller")
        self.progress.start('connect-ws', "Connecting to the server")
        await self.channel.start()
        self._start_discovery(self._run_boot_pass())

    async def stop(self):
        if self._discovery_task and not self._discovery_task.done():
            self._discovery_task.cancel()
            await asyncio.gather(self._discovery_task, return_exceptions=True)
        if self._scan_task and not self._scan_task.done():
            self._scan_task.cancel()
            await asyncio.gather(self._scan_task, return_exceptions=True)
        await self.channel.stop()
        logger.info("Session controller stopped")

    @property
    def discovery_task(self) -> Optional[asyncio.Task]:
        return self._discovery_task

    @property
    def scanning(self) -> bool:
        return self._scanning

    # ================== CHANNEL EVENTS ==================

    def _handshake(self):
        return CMD_INIT, self.identity

    async def _on_channel_status(self, event: str):
        if event in (CONNECTED, CONNECTION_RESTORED):
            self.connection_state = ConnectionState.ACTIVE
            self.progress.complete('connect-ws')
            if event == CONNECTION_RESTORED:
                logger.info(f"Backend session resumed (identity={self.identity})")
        elif event == CONNECTION_LOST:
            self.connection_state = ConnectionState.CONNECTING
            self.progress.start('connect-ws', "Connection lost, reconnecting to the server")

    async def handle_command(self, command: str, arg: Any):
        if command == CMD_UUID:
            await self._on_identity(arg)
        elif command == CMD_TRYL:
            self._on_try_list(arg)
        elif command == CMD_DISP:
            await self._on_broadcast(arg)
        elif command == CMD_HEAT:
            await self._on_heatmap(arg)
        else:
            logger.warning(f"Ignoring unknown backend command {command}")

    async def _on_identity(self, identity: Any):
        if identity is None:
            logger.warning("Backend sent an empty identity")
            return
        self.identity = str(identity)
        logger.info(f"Session identity assigned: {self.identity}")
        await self._emit('identity', self.identity)

    def _on_try_list(self, hosts: Any):
        if not isinstance(hosts, list) or not all(isinstance(h, str) for h in hosts):
            logger.warning(f"Ignoring malformed host list: {hosts!r}")
            return
        logger.info(f"[SEARCH] Backend proposed {len(hosts)} candidate hosts")
        self.last_hosts = list(hosts)
        if self.attempt is None:
            self.attempt = DiscoveryAttempt()
        self._start_discovery(self._run_fallback_pass(self.last_hosts))

    async def _on_broadcast(self, data: Any):
        if not isinstance(data, dict) or 'position' not in data:
            logger.warning("Ignoring malformed measurement broadcast")
            return
        measurement = BroadcastMeasurement(
            position=data['position'],
            measurements=data.get('measurements') or []
        )
        self.measurements.append(measurement)
        await self._emit('measurement', measurement)
        await self.channel.send(CMD_RQHT)

    async def _on_heatmap(self, data: Any):
        if not isinstance(data, list) or len(data) < 2:
            logger.warning("Ignoring malformed heatmap")
            return
        self.heatmap = Heatmap(svg=data[0], bounding_box=data[1])
        await self._emit('heatmap', self.heatmap)

    # ================== DISCOVERY ==================

    def _start_discovery(self, coro) -> asyncio.Task:
        """Run a discovery pass, abandoning the discovery or scan in flight"""
        if self._discovery_task and not self._discovery_task.done():
            logger.info("Superseding discovery pass in flight")
            self._discovery_task.cancel()
        scan_task = self._scan_task
        if scan_task is not None and not scan_task.done():
            logger.info("Cancelling scan of the superseded AP")
            scan_task.cancel()
        self.device = None
        self.discovery_state = DiscoveryState.DISCOVERING
        if scan_task is not None:
            coro = self._after_scan(scan_task, coro)
        self._discovery_task = asyncio.create_task(coro)
        return self._discovery_task

    async def _after_scan(self, scan_task: asyncio.Task, coro):
        # The old AP's radios must be idle before calibration probes them
        try:
            await asyncio.gather(scan_task, return_exceptions=True)
        except asyncio.CancelledError:
            coro.close()
            raise
        await coro

    async def _run_boot_pass(self):
        """Well-known host first; the backend is asked for candidates if it fails"""
        self.attempt = DiscoveryAttempt()
        try:
            device = await self.discovery.discover(self.default_host)
        except DiscoveryError as e:
            logger.warning(f"Default AP unavailable: {e}")
            await self._boot_failed()
            return
        except Exception as e:
            logger.error(f"Discovery of the default AP crashed: {e}", exc_info=True)
            await self._boot_failed()
            return
        await self._bind(device)

    async def _boot_failed(self):
        self.ap_label = NO_REACHABLE_AP
        self.discovery_state = DiscoveryState.NO_DEVICE
        await self.channel.send(CMD_NOAP)

    async def _run_fallback_pass(self, hosts: List[str]):
        try:
            device = await self.discovery.discover_with_fallback(hosts, self.attempt)
        except AllHostsFailedError:
            await self._round_failed()
            return
        except Exception as e:
            logger.error(f"Discovery pass crashed: {e}", exc_info=True)
            await self._round_failed()
            return
        await self._bind(device)

    async def _round_failed(self):
        self.ap_label = NO_REACHABLE_AP
        if self.attempt is None:
            self.attempt = DiscoveryAttempt()
        rounds = self.attempt.exhausted()
        if rounds >= self.max_rounds:
            logger.error(f"Failed to join an AP after {rounds} rounds, waiting for operator retry")
            self.discovery_state = DiscoveryState.RETRY_REQUIRED
            await self._emit('retry-required', rounds)
        else:
            logger.info(f"Round {rounds}/{self.max_rounds} failed, requesting new candidates")
            self.discovery_state = DiscoveryState.NO_DEVICE
            await self.channel.send(CMD_NOAP)

    async def _bind(self, device: Device):
        self.device = device
        self.attempt = None
        self.ap_label = device.model
        self.discovery_state = DiscoveryState.BOUND
        await self._emit('bound', device)

    def retry_discovery(self) -> asyncio.Task:
        """Operator action after discovery gave up. Starts a fresh attempt."""
        if self.discovery_state != DiscoveryState.RETRY_REQUIRED:
            raise RuntimeError(f"Discovery retry not available in state {self.discovery_state.value}")
        hosts = self.last_hosts or [self.default_host]
        logger.info(f"[SEARCH] Operator retry with {len(hosts)} host(s)")
        self.attempt = DiscoveryAttempt()
        return self._start_discovery(self._run_fallback_pass(hosts))

    # ================== MEASUREMENT ==================

    async def request_measurement(self) -> Optional[ScanReport]:
        """
        Scan every radio and submit the result. Returns None without
        submitting when no position is known, no AP is bound, or a discovery
        pass superseded the scan; skip_reason says which. Raises
        ScanBusyError while another scan is in flight.
        """
        start_position = self.pose_source()
        if start_position is None:
            return self._skip("no position available")
        if self.discovery_state != DiscoveryState.BOUND or self.device is None:
            return self._skip("no AP bound")
        if self._scanning:
            raise ScanBusyError()

        self._scanning = True
        self.skip_reason = None
        device = self.device
        self.scan_progress = {name: 0.0 for name in device.radio_names()}
        task = asyncio.create_task(self.scanner.scan(device, self._on_scan_progress))
        self._scan_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._scan_task = None
            self._scanning = False

        if task.cancelled() or self.device is not device:
            return self._skip("scan superseded by a new discovery pass")
        report = task.result()

        if not report.succeeded:
            logger.warning("Every radio failed, nothing to submit")
            return report

        # Position at completion when still fresh, the user may have moved while scanning
        position = self.pose_source() or start_position
        scan = {
            "position": {axis: position[axis] for axis in ('x', 'y', 'z')},
            "timestamp": int(time.time() * 1000),
            "measurements": report.measurements()
        }
        await self.channel.send(CMD_SCAN, scan)
        await self._emit('scan-complete', report)
        return report

    def _skip(self, reason: str) -> None:
        logger.debug(f"Measurement skipped: {reason}")
        self.skip_reason = reason
        return None

    def _on_scan_progress(self, radio: str, value: float):
        self.scan_progress[radio] = value

    # ================== STATUS ==================

    def status(self) -> Dict[str, Any]:
        device = None
        if self.device is not None:
            device = {
                "host": self.device.host,
                "model": self.device.model,
                "radios": self.device.radios,
            }
        return {
            "connection_state": self.connection_state.value,
            "discovery_state": self.discovery_state.value,
            "identity": self.identity,
            "ap_label": self.ap_label,
            "device": device,
            "round_count": self.attempt.round_count if self.attempt else 0,
            "scanning": self._scanning,
            "calibration_errors": {
                name: err.reason for name, err in self.discovery.calibration_errors.items()
            },
        }
