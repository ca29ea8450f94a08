"""
Scan orchestration across the radios of the bound AP
"""

from .coordinator import ScanCoordinator
from .models import ScanReport, ScanResult

__all__ = ['ScanCoordinator', 'ScanReport', 'ScanResult']
