# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import httpx
from loguru import logger
from pydantic import BaseModel

from career_relay.cache import TTL, Cache
from career_relay.errors import RelayDownloadFailed, RelayMetadataFailed
from career_relay.ratelimit import RateLimiter, Unlimited


class TelegramFileInfo(BaseModel):
    """Metadata returned by ``getFile``."""

    file_id: str
    file_path: str
    file_size: int = 0


class TelegramFileClient:
    """Client for the Telegram Bot file API.

    Resolves ``file_id`` references to download paths and fetches their bytes.
    The bot token is embedded in every request path and never logged.
    """

    def __init__(
        self,
        bot_token: str | None,
        api_base: str = "https://api.telegram.org",
        metadata_timeout: float = 10.0,
        download_timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        cache: Cache | None = None,
        limiter: RateLimiter | None = None,
    ):
        """Initializes the TelegramFileClient.

        Args:
            bot_token: The bot credential. Without it every call fails.
            api_base: Base URL of the Bot API.
            metadata_timeout: Timeout in seconds for ``getFile``.
            download_timeout: Timeout in seconds for the byte transfer.
            client: Optional httpx.AsyncClient for connection pooling.
            cache: Optional cache for resolved file metadata.
            limiter: Throttle applied to downloads.
        """
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.metadata_timeout = metadata_timeout
        self.download_timeout = download_timeout
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient()
        self.cache = cache
        self.limiter = limiter or Unlimited()

    async def get_file_info(self, file_id: str) -> TelegramFileInfo:
        """Resolve a file id to its download path.

        Raises:
            RelayMetadataFailed: On a missing token, network error, non-ok answer or missing path.
        """
        if not self.bot_token:
            raise RelayMetadataFailed("No bot token configured", reference=file_id)

        cache_key = f"telegram:file:{file_id}"
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return TelegramFileInfo.model_validate(cached)

        logger.debug(f"Resolving Telegram file {file_id}")
        try:
            response = await self._client.get(
                f"{self.api_base}/bot{self.bot_token}/getFile",
                params={"file_id": file_id},
                timeout=self.metadata_timeout,
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RelayMetadataFailed(f"getFile request failed: {type(e).__name__}", reference=file_id) from e

        if not isinstance(payload, dict):
            payload = {}
        result = payload.get("result")
        if not payload.get("ok") or not isinstance(result, dict) or not result.get("file_path"):
            description = payload.get("description")
            raise RelayMetadataFailed(
                f"getFile returned no file path (HTTP {response.status_code}: {description or 'no description'})",
                reference=file_id,
            )

        info = TelegramFileInfo(
            file_id=file_id,
            file_path=result["file_path"],
            file_size=result.get("file_size") or 0,
        )
        if self.cache is not None:
            await self.cache.set(cache_key, info.model_dump(), ttl=TTL.MEDIUM)
        return info

    async def download(self, file_path: str) -> bytes:
        """Download the bytes behind a resolved file path.

        Raises:
            RelayDownloadFailed: On a missing token, network error or non-2xx status.
        """
        if not self.bot_token:
            raise RelayDownloadFailed("No bot token configured", reference=file_path)

        await self.limiter.acquire()
        logger.debug(f"Downloading Telegram file {file_path}")
        try:
            response = await self._client.get(
                f"{self.api_base}/file/bot{self.bot_token}/{file_path}",
                timeout=self.download_timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RelayDownloadFailed(
                f"Download failed with HTTP {e.response.status_code}", reference=file_path
            ) from e
        except httpx.HTTPError as e:
            raise RelayDownloadFailed(f"Download request failed: {type(e).__name__}", reference=file_path) from e
        return response.content

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()
