"""
Timing history and progress estimation
"""

from .calibration import CalibrationSet
from .model import ProgressEstimate, estimate, progress, fallback_progress, progress_curve

__all__ = ['CalibrationSet', 'ProgressEstimate', 'estimate', 'progress', 'fallback_progress', 'progress_curve']
