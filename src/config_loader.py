"""
Configuration loader for the AP measurement client
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
from urllib.parse import urlsplit, urlunsplit
import pytz

logger = logging.getLogger(__name__)

def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    if not isinstance(config, dict):
        raise ValueError("Configuration root must be a mapping")

    if 'backend' not in config or not isinstance(config['backend'], dict):
        raise ValueError("Missing required configuration section: backend")

    url = config['backend'].get('url')
    if not url:
        raise ValueError("backend.url is required")
    scheme = urlsplit(url).scheme
    if scheme not in ('http', 'https', 'ws', 'wss'):
        raise ValueError(f"backend.url must use http, https, ws or wss (got '{scheme}')")

    discovery = config.get('discovery') or {}
    max_rounds = discovery.get('max_rounds', 3)
    if not isinstance(max_rounds, int) or max_rounds < 1:
        raise ValueError("discovery.max_rounds must be a positive integer")

    scan = config.get('scan') or {}
    if scan.get('default_duration_ms', 5000) <= 0:
        raise ValueError("scan.default_duration_ms must be positive")
    if scan.get('progress_interval_ms', 50) <= 0:
        raise ValueError("scan.progress_interval_ms must be positive")

    log_tz = (config.get('logging') or {}).get('timezone')
    if log_tz:
        try:
            pytz.timezone(log_tz)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown logging.timezone: {log_tz}")

def _apply_section_defaults(config: Dict, section: str, defaults: Dict) -> None:
    if not isinstance(config.get(section), dict):
        config[section] = {}
    for key, default_value in defaults.items():
        if key not in config[section]:
            config[section][key] = default_value

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # AP defaults
    _apply_section_defaults(config, 'ap', {
        'default_host': 'http://ap.local',
        'request_timeout': 5,       # info/list handshake
        'scan_timeout': 60          # radio scans can take several seconds
    })

    _apply_section_defaults(config, 'discovery', {
        'max_rounds': 3
    })

    _apply_section_defaults(config, 'scan', {
        'progress_interval_ms': 50,
        'default_duration_ms': 5000
    })

    _apply_section_defaults(config, 'backend', {
        'ws_path': '/ws',
        'reconnect_delay_seconds': 1,
        'max_reconnect_delay_seconds': 30,
        'heartbeat_seconds': 30,
        'min_stable_seconds': 5,
        'ssl_verify': True,
        'ca_cert_path': None
    })

    _apply_section_defaults(config, 'session', {
        'identity_file': None
    })

    _apply_section_defaults(config, 'pose', {
        'max_age_seconds': None     # None: a reported position never goes stale
    })

    _apply_section_defaults(config, 'api', {
        'enabled': True,
        'host': '127.0.0.1',
        'port': 8090
    })

    _apply_section_defaults(config, 'logging', {
        'level': 'INFO',
        'file': 'logs/ap_client.log',
        'console_output': True,
        'timezone': 'UTC'
    })

    return config

def get_backend_ws_url(config: Dict) -> str:
    """Websocket URL of the backend session endpoint"""
    backend = config['backend']
    parts = urlsplit(backend['url'])
    scheme = {'http': 'ws', 'https': 'wss'}.get(parts.scheme, parts.scheme)
    path = parts.path.rstrip('/') + backend.get('ws_path', '/ws')
    return urlunsplit((scheme, parts.netloc, path, parts.query, ''))

def get_backend_ssl_config(config: Dict) -> Dict[str, Any]:
    """Get SSL configuration for the backend connection"""
    backend = config.get('backend', {})
    scheme = urlsplit(backend.get('url', '')).scheme
    return {
        'ssl_enabled': scheme in ('https', 'wss'),
        'ssl_verify': backend.get('ssl_verify', True),
        'ca_cert_path': backend.get('ca_cert_path')
    }


class ZoneFormatter(logging.Formatter):
    """Formatter rendering timestamps in a configured time zone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    tz_name = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = ZoneFormatter(log_format, tz_name)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # aiohttp access logging is noisy at INFO
    logging.getLogger('aiohttp.access').setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={level}, tz={tz_name}, "
                f"console={log_config.get('console_output', True)}, file={log_file}")
