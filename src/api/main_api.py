"""
Local HTTP API for the AP measurement client
Exposes session state, discovery retry, pose updates and scan requests
"""

from fastapi import FastAPI
from typing import Dict
import logging

from .session_routes import create_session_routes
from .measurement_routes import create_measurement_routes

logger = logging.getLogger(__name__)


class ApClientAPI:
    """Local HTTP API driving the session controller"""

    def __init__(self, controller, pose_tracker, config: Dict):
        self.controller = controller
        self.pose = pose_tracker
        self.config = config
        self.app = FastAPI(
            title="AP Measurement Client",
            description="Local API for AP discovery status, scans and backend broadcasts",
            version="1.0.0"
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        self.app.include_router(create_session_routes(self.controller, self.pose))
        self.app.include_router(create_measurement_routes(self.controller))

        @self.app.get("/api/health")
        async def health():
            status = self.controller.status()
            return {
                "healthy": status["connection_state"] == "active",
                "connection_state": status["connection_state"],
                "discovery_state": status["discovery_state"],
            }
