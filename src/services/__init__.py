"""
Service wiring for the AP measurement client
"""

from .ap_client import ApClientService
from .pose import PoseTracker

__all__ = ['ApClientService', 'PoseTracker']
