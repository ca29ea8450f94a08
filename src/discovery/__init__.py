"""
Discovery module for AP discovery and calibration
"""

from .manager import ApDiscovery
from .models import Device, DiscoveryAttempt, DiscoveryStep, StepStatus, display_host, normalize_host
from .probe import HttpProbe

__all__ = ['ApDiscovery', 'Device', 'DiscoveryAttempt', 'DiscoveryStep', 'StepStatus',
           'HttpProbe', 'display_host', 'normalize_host']
