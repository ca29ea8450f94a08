"""
AP Client Service - orchestrator for the backend session, discovery, scanning and local API
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
import uvicorn

from config_loader import load_config, setup_logging, get_backend_ws_url, get_backend_ssl_config
from discovery import ApDiscovery, HttpProbe
from http_helper import create_ap_session, create_backend_session
from scanning import ScanCoordinator
from session import SessionChannel, SessionController
from api.main_api import ApClientAPI
from .pose import PoseTracker

logger = logging.getLogger(__name__)


def load_identity(path: Optional[str]) -> Optional[str]:
    """Read a previously assigned session identity, if persisted"""
    if not path:
        return None
    identity_file = Path(path)
    if not identity_file.exists():
        return None
    try:
        with open(identity_file, 'r') as f:
            data = json.load(f)
        return data.get('uuid')
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable identity file {path}: {e}")
        return None

def save_identity(path: Optional[str], identity: str) -> None:
    if not path:
        return
    identity_file = Path(path)
    identity_file.parent.mkdir(parents=True, exist_ok=True)
    with open(identity_file, 'w') as f:
        json.dump({'uuid': identity}, f)


class ApClientService:
    """Main service wiring the session controller to its collaborators"""

    def __init__(self, config_path: Optional[str] = "config/config.yaml", config: Optional[Dict] = None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        self.ap_session: Optional[aiohttp.ClientSession] = None
        self.backend_session: Optional[aiohttp.ClientSession] = None
        self.controller: Optional[SessionController] = None
        self.api: Optional[ApClientAPI] = None
        self.pose = PoseTracker(self.config.get('pose', {}).get('max_age_seconds'))
        self.identity_file = self.config['session'].get('identity_file')

        self.running = False
        self.tasks = []
        self._api_server: Optional[uvicorn.Server] = None

    def build(self) -> SessionController:
        """Create sessions and components (requires a running event loop)"""
        ap_config = self.config['ap']
        self.ap_session = create_ap_session(ap_config['request_timeout'])

        ssl_config = get_backend_ssl_config(self.config)
        self.backend_session = create_backend_session(
            ssl_enabled=ssl_config['ssl_enabled'],
            ssl_verify=ssl_config['ssl_verify'],
            ca_cert_path=ssl_config['ca_cert_path']
        )

        probe = HttpProbe(self.ap_session)
        discovery = ApDiscovery(probe, ap_config)
        scanner = ScanCoordinator(probe, {**self.config['scan'], 'scan_timeout': ap_config['scan_timeout']})
        channel = SessionChannel(self.backend_session, get_backend_ws_url(self.config), self.config['backend'])

        self.controller = SessionController(
            channel, discovery, scanner,
            pose_source=self.pose.current,
            config={
                'default_host': ap_config['default_host'],
                'max_rounds': self.config['discovery']['max_rounds']
            },
            identity=load_identity(self.identity_file)
        )
        self.controller.add_event_callback(self._on_event)
        self.api = ApClientAPI(self.controller, self.pose, self.config)
        return self.controller

    async def _on_event(self, event: str, data: Any):
        if event == 'identity':
            try:
                save_identity(self.identity_file, data)
            except OSError as e:
                logger.error(f"Failed to persist session identity: {e}")
        elif event == 'retry-required':
            logger.warning("AP discovery needs operator action: POST /api/session/retry")
        elif event == 'bound':
            logger.info(f"[SUCCESS] Measuring with {data.model} at {data.host}")

    async def start(self):
        """Start all services"""
        logger.info("[LAUNCH] Starting AP measurement client...")
        try:
            if self.controller is None:
                self.build()
            await self.controller.start()
            self.running = True

            if self.config['api']['enabled']:
                await self._start_api_server()
            else:
                logger.info("Local API disabled - running headless")
                while self.running:
                    await asyncio.sleep(1)

        except Exception as e:
            logger.error(f"Client startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop all services gracefully"""
        logger.info("Stopping client...")
        self.running = False

        if self._api_server is not None:
            self._api_server.should_exit = True

        if self.controller is not None:
            await self.controller.stop()

        for session in (self.ap_session, self.backend_session):
            if session is not None and not session.closed:
                await session.close()
        logger.info("Client stopped")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        api_config = self.config['api']
        config = uvicorn.Config(
            self.api.app,
            host=api_config['host'],
            port=api_config['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        self._api_server = uvicorn.Server(config)
        logger.info(f"Starting API server on {api_config['host']}:{api_config['port']}")
        logger.info(f"API documentation: http://localhost:{api_config['port']}/docs")
        await self._api_server.serve()
