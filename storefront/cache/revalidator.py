"""
Page-cache revalidation backends.

LocalRevalidator drops entries from the in-process PageCache. It is what
the /revalidate endpoint itself uses. RemoteRevalidator asks a running
site to do the same through its /revalidate endpoint, for callers (CLI,
workers) that live outside the web process.
"""
from typing import Any, Dict, Iterable, Optional

import httpx

from storefront.cache.page_cache import PAGE, PageCache
from storefront.core.errors import RevalidationError
from storefront.utils.logger import get_logger

logger = get_logger("cache.revalidator")


class Revalidator:
    async def revalidate_tags(self, tags: Iterable[str]) -> None:
        raise NotImplementedError

    async def revalidate_path(self, path: str, kind: str = PAGE) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        pass


class LocalRevalidator(Revalidator):
    def __init__(self, page_cache: PageCache):
        self.page_cache = page_cache

    async def revalidate_tags(self, tags: Iterable[str]) -> None:
        for tag in tags:
            dropped = self.page_cache.revalidate_tag(tag)
            logger.info(f"Revalidated tag: {tag} ({dropped} entries)")

    async def revalidate_path(self, path: str, kind: str = PAGE) -> None:
        dropped = self.page_cache.revalidate_path(path, kind)
        logger.info(f"Revalidated path: {path} [{kind}] ({dropped} entries)")


class RemoteRevalidator(Revalidator):
    def __init__(
        self,
        site_url: str,
        secret: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.site_url = site_url.rstrip("/")
        self.secret = secret
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _post(self, body: Dict[str, Any]) -> None:
        if self.secret:
            body = {**body, "secret": self.secret}
        url = f"{self.site_url}/revalidate"
        try:
            response = await self.client.post(url, json=body)
        except httpx.HTTPError as e:
            raise RevalidationError(f"Revalidation request to {url} failed: {e}") from e
        if not response.is_success:
            raise RevalidationError(
                f"Revalidation failed with {response.status_code}: {response.text}"
            )

    async def revalidate_tags(self, tags: Iterable[str]) -> None:
        tags = list(tags)
        await self._post({"tags": tags})
        logger.info(f"Remote revalidation of tags {', '.join(tags)} succeeded")

    async def revalidate_path(self, path: str, kind: str = PAGE) -> None:
        await self._post({"path": path, "type": kind})
        logger.info(f"Remote revalidation of path {path} [{kind}] succeeded")

    async def aclose(self) -> None:
        await self.client.aclose()
