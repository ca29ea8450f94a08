"""
HTTP probe against the AP control surface
"""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from errors import ProbeError

logger = logging.getLogger(__name__)


class HttpProbe:
    """Issues GET requests against an AP. Every failure surfaces as ProbeError."""

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    async def get_raw(self, url: str, timeout: Optional[float] = None) -> bytes:
        """GET `url` and return the body, used where only latency matters"""
        kwargs = {}
        if timeout is not None:
            kwargs['timeout'] = aiohttp.ClientTimeout(total=timeout)

        try:
            async with self.session.get(url, **kwargs) as response:
                body = await response.read()
                if response.status != 200:
                    raise ProbeError(url, f"HTTP {response.status}")
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProbeError(url, str(e) or type(e).__name__) from e

    async def get_json(self, url: str, timeout: Optional[float] = None) -> Any:
        """GET `url` and decode the body as JSON"""
        body = await self.get_raw(url, timeout)
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ProbeError(url, f"malformed JSON body: {e}") from e
