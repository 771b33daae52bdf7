"""
Cache invalidation on catalog writes.

Two guarded steps run for every invalidation:

1. revalidation - drop tagged entries and paths from the page cache
2. cloudflare   - purge the CDN zone, only when credentials are configured

Neither step raises to the caller; each failure is logged and recorded as
a False operation. Overall success is true when ANY step succeeded, not
when all did. Callers that need to tell "one failed" from "both failed"
must look at `operations`.
"""
from dataclasses import dataclass
from typing import Optional

from storefront.cache.cdn import CloudflarePurgeClient
from storefront.cache.page_cache import LAYOUT, PAGE
from storefront.cache.revalidator import Revalidator
from storefront.data.models import CacheInvalidationResult, InvalidationOperations
from storefront.utils.logger import get_logger

logger = get_logger("cache.invalidator")

CATALOG_TAGS = ("homepage", "categories", "products")
CATALOG_PATHS = ("/", "/products")

ENTITY_ACTIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class InvalidationScope:
    kind: str
    slug: Optional[str] = None

    @classmethod
    def catalog(cls) -> "InvalidationScope":
        return cls("catalog")

    @classmethod
    def category(cls, slug: str) -> "InvalidationScope":
        if not slug:
            raise ValueError("category scope requires a slug")
        return cls("category", slug)

    def describe(self) -> str:
        return "whole catalog" if self.kind == "catalog" else f"category {self.slug}"


class CacheInvalidator:
    def __init__(
        self,
        revalidator: Optional[Revalidator],
        cdn: Optional[CloudflarePurgeClient] = None,
    ):
        self.revalidator = revalidator
        self.cdn = cdn

    async def invalidate(self, scope: InvalidationScope) -> CacheInvalidationResult:
        logger.info(f"Starting cache invalidation for {scope.describe()}")
        operations = InvalidationOperations()
        try:
            operations.revalidation = await self._revalidate(scope)
            operations.cloudflare = await self._purge_cdn()

            # any-succeeded, not all-succeeded
            success = operations.revalidation or operations.cloudflare
            if success:
                logger.info("Cache invalidation completed successfully")
            else:
                logger.warning("Cache invalidation completed with no successful operation")
            return CacheInvalidationResult(success=success, operations=operations)
        except Exception as e:
            logger.exception(f"Cache invalidation failed: {e}")
            return CacheInvalidationResult(
                success=False,
                operations=InvalidationOperations(),
                error=str(e) or e.__class__.__name__,
            )

    async def _revalidate(self, scope: InvalidationScope) -> bool:
        if scope.kind not in ("catalog", "category"):
            raise ValueError(f"Unknown invalidation scope: {scope.kind!r}")
        if self.revalidator is None:
            logger.warning("No revalidator configured, skipping revalidation")
            return False
        try:
            if scope.kind == "catalog":
                await self.revalidator.revalidate_tags(CATALOG_TAGS)
                for path in CATALOG_PATHS:
                    await self.revalidator.revalidate_path(path, LAYOUT)
            else:
                await self.revalidator.revalidate_tags([f"category-{scope.slug}", "categories"])
                await self.revalidator.revalidate_path(f"/category/{scope.slug}", PAGE)
        except Exception as e:
            logger.warning(f"Revalidation failed: {e}")
            return False
        return True

    async def _purge_cdn(self) -> bool:
        if self.cdn is None:
            logger.info("Cloudflare credentials not available, skipping cache purge")
            return False
        try:
            await self.cdn.purge_everything()
        except Exception as e:
            logger.warning(f"Cloudflare cache purge failed: {e}")
            return False
        return True

    async def on_entity_mutated(self, entity_id: str, action: str) -> CacheInvalidationResult:
        """
        Invalidate after a product create/update/delete.

        Always invalidates the whole catalog; individual product pages are
        not targeted.
        """
        if action not in ENTITY_ACTIONS:
            raise ValueError(f"Unknown action {action!r}; expected one of {', '.join(ENTITY_ACTIONS)}")
        logger.info(f"Product {action}: {entity_id}")
        return await self.invalidate(InvalidationScope.catalog())
