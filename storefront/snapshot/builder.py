"""
Catalog snapshot builder.

Pulls the full catalog through the CatalogReader, sanitizes it, and writes
the static JSON projections the storefront reads first:

    data/homepage.json               homepage bundle (featured / deals / trending)
    api/products/<slug>.json         one file per product
    api/categories/<slug>.json       one file per active category
    api/static-data/manifest.json    id-indexed manifest with collection lists

Failure semantics:
- A read failure aborts the rebuild before anything is written, leaving the
  previous snapshot in place.
- A single file write failure is logged and skipped; the rest of the rebuild
  continues and the path is reported in SnapshotResult.failed. With
  strict_writes=True the first write failure raises SnapshotWriteError.

Rebuilds are serialized per builder instance so two triggers never
interleave their writes.
"""
import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from storefront.core.errors import SnapshotWriteError
from storefront.data.catalog_reader import CatalogReader
from storefront.snapshot.projections import (
    CategoryDoc,
    ProductDoc,
    SnapshotStamp,
    build_homepage_bundle,
    build_manifest,
)
from storefront.snapshot.sanitizer import Sanitizer
from storefront.snapshot.store import SnapshotLayout, write_json_atomic
from storefront.utils.logger import get_logger

logger = get_logger("snapshot.builder")


@dataclass
class SnapshotResult:
    written: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    version: int = 0
    last_updated: str = ""

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "written": self.written,
            "failed": self.failed,
            "version": self.version,
            "lastUpdated": self.last_updated,
        }


async def load_catalog(
    reader: CatalogReader, sanitizer: Sanitizer
) -> Tuple[List[CategoryDoc], List[ProductDoc]]:
    """
    Fetch active categories and all products, join and sanitize them.

    Products are not filtered by status; visibility is decided by whoever
    serves the snapshot. A product whose category is missing or inactive
    gets `categories: null`.
    """
    categories = await reader.fetch_categories(active_only=True)
    products = await reader.fetch_products()

    by_id = {c.id: c for c in categories}
    category_docs = [(c, sanitizer.sanitize(c.model_dump(mode="json"))) for c in categories]

    product_docs = []
    for product in products:
        joined = product.model_copy(update={"categories": by_id.get(product.category_id)})
        product_docs.append((joined, sanitizer.sanitize(joined.model_dump(mode="json"))))
    return category_docs, product_docs


class SnapshotBuilder:
    def __init__(
        self,
        reader: CatalogReader,
        layout: SnapshotLayout,
        sanitizer: Optional[Sanitizer] = None,
        clock: Callable[[], float] = time.time,
        strict_writes: bool = False,
    ):
        self.reader = reader
        self.layout = layout
        self.sanitizer = sanitizer or Sanitizer()
        self.clock = clock
        self.strict_writes = strict_writes
        self._lock = asyncio.Lock()

    async def build(self) -> SnapshotResult:
        async with self._lock:
            return await self._build()

    async def _build(self) -> SnapshotResult:
        logger.info("Starting catalog snapshot rebuild")
        self.layout.ensure_dirs()

        # Read failures propagate: nothing has been written yet.
        category_docs, product_docs = await load_catalog(self.reader, self.sanitizer)
        logger.info(f"Fetched {len(category_docs)} categories and {len(product_docs)} products")

        stamp = SnapshotStamp.from_timestamp(self.clock())
        result = SnapshotResult(version=stamp.version, last_updated=stamp.last_updated)

        for product, doc in product_docs:
            await self._write(result, lambda slug=product.slug: self.layout.product_path(slug), doc)

        for category, doc in category_docs:
            await self._write(result, lambda slug=category.slug: self.layout.category_path(slug), doc)

        await self._write(
            result,
            lambda: self.layout.homepage_path,
            build_homepage_bundle(category_docs, product_docs, stamp),
        )
        await self._write(
            result,
            lambda: self.layout.manifest_path,
            build_manifest(category_docs, product_docs, stamp),
        )

        if result.failed:
            logger.warning(
                f"Snapshot rebuild finished with {len(result.failed)} failed writes "
                f"({len(result.written)} written)"
            )
        else:
            logger.info(f"Snapshot rebuild complete: {len(result.written)} files, version {stamp.version}")
        return result

    async def _write(self, result: SnapshotResult, target: Callable[[], Path], data: Any) -> None:
        path = None
        try:
            path = target()
            await asyncio.to_thread(write_json_atomic, path, data)
        except (OSError, ValueError, TypeError) as e:
            label = str(path) if path is not None else repr(data.get("slug") if isinstance(data, dict) else None)
            logger.error(f"Failed to write snapshot file {label}: {e}")
            if self.strict_writes:
                raise SnapshotWriteError(f"Failed to write {label}: {e}") from e
            result.failed.append(label)
            return
        result.written.append(str(path))
