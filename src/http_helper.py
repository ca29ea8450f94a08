# HTTP Helper for AP and backend connections
# SSL-aware session configuration for the local AP and the backend websocket

import aiohttp
import ssl
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

def create_ap_session(timeout_seconds: float = 5) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for AP connections (always HTTP)
    One connection per radio probe, closed after each request
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=8,           # Calibration and scan probe every radio at once
        ssl=False,                  # APs serve plain HTTP on the local network
        force_close=True,           # Force connection cleanup
        enable_cleanup_closed=True  # Additional cleanup
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )

def build_ssl_context(ssl_verify: bool = True, ca_cert_path: Optional[str] = None) -> ssl.SSLContext:
    """Create the SSL context used for wss:// backend connections"""
    ssl_context = ssl.create_default_context()

    if not ssl_verify:
        # Disable SSL verification (for development/self-signed certs)
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        logger.warning("SSL verification disabled")
    elif ca_cert_path:
        ca_path = Path(ca_cert_path)
        if ca_path.exists():
            ssl_context.load_verify_locations(ca_path)
            logger.info(f"Loaded custom CA certificate: {ca_path}")
        else:
            logger.warning(f"CA certificate not found: {ca_path}")

    return ssl_context

def create_backend_session(
    timeout_seconds: Optional[float] = None,
    ssl_enabled: bool = False,
    ssl_verify: bool = True,
    ca_cert_path: Optional[str] = None
) -> aiohttp.ClientSession:
    """
    Create aiohttp session for the backend duplex channel
    No total timeout unless given: the websocket stays open indefinitely
    """
    if ssl_enabled:
        logger.info(f"Creating SSL-enabled backend session (verify={ssl_verify})")
        connector = aiohttp.TCPConnector(
            ssl=build_ssl_context(ssl_verify, ca_cert_path),
            limit=4,
            enable_cleanup_closed=True
        )
    else:
        logger.info("Creating plain backend session")
        connector = aiohttp.TCPConnector(
            ssl=False,
            limit=4,
            enable_cleanup_closed=True
        )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )
