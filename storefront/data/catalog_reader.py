"""
Read-only access to the catalog tables (products, categories, and the
product_categories junction).

The reader never retries: a failed query surfaces as CatalogFetchError and
the caller decides what a failure means for its unit of work. An empty
result is an empty list, not an error.
"""
from typing import Any, Dict, Iterable, List, Optional

from storefront.data.models import Category, Product, category_from_row, product_from_row
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient, in_filter

logger = get_logger("data.catalog_reader")


class CatalogReader:
    """Fetch denormalized catalog rows from Supabase."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def fetch_categories(
        self,
        active_only: bool = True,
        ids: Optional[Iterable[str]] = None,
        slugs: Optional[Iterable[str]] = None,
    ) -> List[Category]:
        filters: Dict[str, Any] = {}
        if active_only:
            filters["is_active"] = True
        if ids is not None:
            filters["id"] = in_filter(ids)
        if slugs is not None:
            filters["slug"] = in_filter(slugs)

        rows = await self.client.select("categories", filters=filters)
        return [category_from_row(r) for r in rows]

    async def fetch_products(
        self,
        ids: Optional[Iterable[str]] = None,
        slugs: Optional[Iterable[str]] = None,
        status: Optional[str] = None,
        join_categories: bool = False,
    ) -> List[Product]:
        """
        Fetch product rows, optionally filtered by id, slug and status.

        With join_categories, each product carries its primary category
        (via category_id) in `categories` and the union of the primary and
        junction-table categories, deduplicated by id, in `all_categories`.
        """
        filters: Dict[str, Any] = {}
        if ids is not None:
            filters["id"] = in_filter(ids)
        if slugs is not None:
            filters["slug"] = in_filter(slugs)
        if status is not None:
            filters["status"] = status

        rows = await self.client.select("products", filters=filters)
        products = [product_from_row(r) for r in rows]
        if join_categories and products:
            products = await self._join_categories(products)
        return products

    async def _join_categories(self, products: List[Product]) -> List[Product]:
        product_ids = [p.id for p in products]
        links = await self.client.select(
            "product_categories",
            filters={"product_id": in_filter(product_ids)},
            select="product_id,categories(*)",
        )

        linked: Dict[str, List[Category]] = {}
        for link in links:
            embedded = link.get("categories")
            if not embedded:
                continue
            linked.setdefault(link["product_id"], []).append(category_from_row(embedded))

        primary_ids = sorted({p.category_id for p in products if p.category_id})
        primary: Dict[str, Category] = {}
        if primary_ids:
            for cat in await self.fetch_categories(active_only=False, ids=primary_ids):
                primary[cat.id] = cat

        joined = []
        for product in products:
            main = primary.get(product.category_id) if product.category_id else None
            seen = set()
            merged = []
            for cat in ([main] if main else []) + linked.get(product.id, []):
                if cat.id in seen:
                    continue
                seen.add(cat.id)
                merged.append(cat)
            joined.append(product.model_copy(update={"categories": main, "all_categories": merged}))
        logger.debug(f"Joined categories for {len(joined)} products")
        return joined
