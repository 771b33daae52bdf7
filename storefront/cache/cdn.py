"""Cloudflare zone purge client."""
from typing import Optional

import httpx

from storefront.core.config import StorefrontConfig
from storefront.core.errors import CDNPurgeError
from storefront.utils.logger import get_logger

logger = get_logger("cache.cdn")


class CloudflarePurgeClient:
    """
    Purge the whole Cloudflare zone cache.

    Every request is bounded by `timeout` so a hung upstream cannot hold up
    the invalidation endpoint.
    """

    def __init__(
        self,
        zone_id: str,
        api_token: str,
        api_base: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.zone_id = zone_id
        self.api_base = api_base.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: StorefrontConfig) -> Optional["CloudflarePurgeClient"]:
        """Build a client, or return None when credentials are not configured."""
        if not config.cdn_configured:
            return None
        return cls(
            config.cloudflare_zone_id,
            config.cloudflare_api_token,
            api_base=config.cdn_api_base,
            timeout=config.cdn_timeout,
        )

    async def purge_everything(self) -> None:
        url = f"{self.api_base}/zones/{self.zone_id}/purge_cache"
        try:
            response = await self.client.post(url, json={"purge_everything": True})
        except httpx.HTTPError as e:
            raise CDNPurgeError(f"Cloudflare purge request failed: {e}") from e
        if not response.is_success:
            raise CDNPurgeError(
                f"Cloudflare purge failed with {response.status_code}: {response.text}"
            )
        logger.info("Cloudflare cache purged successfully")

    async def aclose(self) -> None:
        await self.client.aclose()
