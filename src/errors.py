"""
Error taxonomy for AP discovery, scanning and the backend session
"""

from typing import Dict, List, Optional


class ApClientError(Exception):
    """Base class for every error raised by the AP client"""


class ProbeError(ApClientError):
    """Low-level HTTP probe failure (network error, bad status, bad body)"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Probe of {url} failed: {reason}")
        self.url = url
        self.reason = reason


class DiscoveryError(ApClientError):
    """Discovery against a single host failed"""

    def __init__(self, host: str, message: str):
        super().__init__(message)
        self.host = host


class HostUnreachableError(DiscoveryError):
    """The capability query (/cgi-bin/info) failed"""

    def __init__(self, host: str, reason: Optional[str] = None):
        message = f"AP {host} is unreachable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(host, message)


class RadioListError(DiscoveryError):
    """The radio enumeration (/cgi-bin/list) failed"""

    def __init__(self, host: str, reason: Optional[str] = None):
        message = f"Listing radios on {host} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(host, message)


class AllHostsFailedError(ApClientError):
    """Every candidate host of a fallback pass failed"""

    def __init__(self, hosts: List[str], failures: Optional[Dict[str, DiscoveryError]] = None):
        super().__init__(f"No reachable AP among {len(hosts)} candidate host(s)")
        self.hosts = list(hosts)
        self.failures = failures or {}


class InsufficientHistoryError(ApClientError):
    """Timing history too short (or zero median) to derive a progress curve"""


class ScanBusyError(ApClientError):
    """A scan pass is already in flight"""

    def __init__(self):
        super().__init__("A scan is already in progress")


class RadioProbeError(ApClientError):
    """A single radio's calibration or scan probe failed"""

    def __init__(self, radio: str, reason: str):
        super().__init__(f"Radio {radio} probe failed: {reason}")
        self.radio = radio
        self.reason = reason


class ChannelDisconnectedError(ApClientError):
    """The backend channel is not connected"""

    def __init__(self, message: str = "Backend channel is disconnected"):
        super().__init__(message)
