"""
Client for the channel-lookup API (YouTube metadata service).

One endpoint serves both needs of the pipeline:
``GET {base}/channel/{identifier}`` answers with the channel descriptor and,
when asked by channel id, its content sections (``results``).
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ..core.models import ChannelDescriptor
from ..shared.exceptions import CollaboratorError, ErrorCode

logger = logging.getLogger(__name__)

SERVICE_NAME = "channel-lookup"


class ChannelLookupClient:
    """Async client; one short-lived httpx client per request"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def get_channel(self, identifier: str) -> ChannelDescriptor:
        """
        Fetch the descriptor for a raw channel id or a handle (without ``@``).

        A descriptor without ``id`` means the channel does not exist.

        Raises:
            CollaboratorError: network failure, non-2xx answer or non-JSON body
        """
        url = f"{self.base_url}/channel/{quote(identifier, safe='')}"
        logger.info(f"📡 Channel lookup: {url}")

        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"❌ HTTP error calling channel lookup: {e}")
            raise CollaboratorError(
                SERVICE_NAME,
                f"Channel lookup request failed: {e}",
                details={"error_type": type(e).__name__},
                cause=e,
            )

        if response.status_code >= 400:
            raise CollaboratorError(
                SERVICE_NAME,
                f"Channel lookup returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise CollaboratorError(
                SERVICE_NAME,
                "Channel lookup returned invalid JSON",
                status_code=response.status_code,
                error_code=ErrorCode.API_INVALID_RESPONSE,
                cause=e,
            )

        if not isinstance(body, dict):
            return ChannelDescriptor()
        return ChannelDescriptor.model_validate(body)

    async def resolve(self, channel: str) -> ChannelDescriptor:
        """``@handle`` is looked up by handle, anything else as a raw id"""
        if channel.startswith("@"):
            return await self.get_channel(channel[1:])
        return await self.get_channel(channel)

    async def fetch_videos(self, channel_id: str) -> list:
        """Raw video descriptors of the channel's "videos" section"""
        descriptor = await self.get_channel(channel_id)
        return descriptor.video_section()
