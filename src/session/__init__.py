"""
Backend session: command framing, duplex channel and controller
"""

from .channel import SessionChannel
from .controller import (
    BroadcastMeasurement, ConnectionState, DiscoveryState, Heatmap, SessionController,
)
from .progress import ProgressBoard

__all__ = ['SessionChannel', 'SessionController', 'ConnectionState', 'DiscoveryState',
           'BroadcastMeasurement', 'Heatmap', 'ProgressBoard']
