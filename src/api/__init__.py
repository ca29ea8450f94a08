"""
API module for the local control surface
"""

from .main_api import ApClientAPI
from .session_routes import create_session_routes
from .measurement_routes import create_measurement_routes

__all__ = ['ApClientAPI', 'create_session_routes', 'create_measurement_routes']
