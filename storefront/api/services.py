"""
Per-app service container.

Everything stateful (caches, HTTP clients, the snapshot builder) hangs off
one StorefrontServices instance created by the app factory, so tests can
build an app with fakes and a fresh cache each time.
"""
import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from storefront.cache.cdn import CloudflarePurgeClient
from storefront.cache.invalidator import CacheInvalidator
from storefront.cache.page_cache import PageCache
from storefront.cache.revalidator import LocalRevalidator
from storefront.cache.ttl_cache import TTLCache
from storefront.core.config import StorefrontConfig
from storefront.data.catalog_reader import CatalogReader
from storefront.data.models import Category, Product
from storefront.snapshot.builder import SnapshotBuilder
from storefront.snapshot.sanitizer import Sanitizer
from storefront.snapshot.store import SnapshotLayout, read_json
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient

logger = get_logger("api.services")


class StorefrontServices:
    def __init__(
        self,
        config: StorefrontConfig,
        cache: Optional[TTLCache] = None,
        reader: Optional[CatalogReader] = None,
        invalidator: Optional[CacheInvalidator] = None,
        snapshot_builder: Optional[SnapshotBuilder] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.clock = clock
        # Page entries and live-query results share one store so a tag
        # revalidation drops both.
        self.cache = cache if cache is not None else TTLCache(
            ttl_seconds=config.page_cache_ttl,
            max_entries=config.page_cache_max_entries,
        )
        self.page_cache = PageCache(self.cache)
        self.revalidator = LocalRevalidator(self.page_cache)
        self.sanitizer = Sanitizer(config.sanitize_rules)
        self.layout = SnapshotLayout(Path(config.public_dir))
        self._reader = reader
        self._invalidator = invalidator
        self._snapshot_builder = snapshot_builder
        self._closeables: List[Any] = []

    @property
    def reader(self) -> CatalogReader:
        if self._reader is None:
            self.config.require_database()
            client = SupabaseClient(
                self.config.supabase_url,
                self.config.supabase_key,
                timeout=self.config.database_timeout,
            )
            self._closeables.append(client)
            self._reader = CatalogReader(client)
        return self._reader

    @property
    def invalidator(self) -> CacheInvalidator:
        if self._invalidator is None:
            cdn = CloudflarePurgeClient.from_config(self.config)
            if cdn is not None:
                self._closeables.append(cdn)
            self._invalidator = CacheInvalidator(self.revalidator, cdn)
        return self._invalidator

    @property
    def snapshot_builder(self) -> SnapshotBuilder:
        if self._snapshot_builder is None:
            self._snapshot_builder = SnapshotBuilder(
                self.reader,
                self.layout,
                sanitizer=self.sanitizer,
                clock=self.clock,
                strict_writes=self.config.strict_writes,
            )
        return self._snapshot_builder

    def sanitized_product(self, product: Product) -> Product:
        doc = self.sanitizer.sanitize(product.model_dump(mode="json"))
        cats = [
            Category.model_validate(self.sanitizer.sanitize(c.model_dump(mode="json")))
            for c in product.all_categories
        ]
        return Product.model_validate({**doc, "all_categories": cats})

    async def read_fresh_snapshot(self, path: Path) -> Optional[Dict[str, Any]]:
        """Snapshot document at `path`, or None when missing, unreadable or stale."""
        try:
            age = self.clock() - path.stat().st_mtime
        except FileNotFoundError:
            return None
        if age > self.config.snapshot_max_age:
            logger.info(f"Snapshot {path} is stale ({int(age)}s old), using live data")
            return None
        try:
            data = await asyncio.to_thread(read_json, path)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable snapshot {path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    async def aclose(self) -> None:
        for client in self._closeables:
            await client.aclose()
        self._closeables.clear()
