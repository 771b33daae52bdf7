"""
Pure projections from catalog records to snapshot documents.

Each product is passed as a (record, document) pair: the record drives
filtering and ordering, the document (already sanitized JSON) is what gets
written. Nothing here performs I/O.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from storefront.data.models import Category, Product

ProductDoc = Tuple[Product, Dict[str, Any]]
CategoryDoc = Tuple[Category, Dict[str, Any]]

# collection name -> (membership test, order column)
COLLECTIONS: Dict[str, Tuple[Callable[[Product], bool], str]] = {
    "featured": (lambda p: bool(p.is_featured), "featured_order"),
    "trending": (lambda p: bool(p.is_trending), "trending_order"),
    "bestDeals": (lambda p: p.has_discount, "deal_order"),
}


@dataclass(frozen=True)
class SnapshotStamp:
    """Freshness marker shared by the homepage bundle and the manifest."""
    last_updated: str
    version: int

    @classmethod
    def from_timestamp(cls, ts: float) -> "SnapshotStamp":
        moment = datetime.fromtimestamp(ts, tz=timezone.utc)
        iso = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return cls(last_updated=iso, version=int(ts * 1000))


def _order_value(product: Product, field: str) -> Optional[Any]:
    return (product.model_extra or {}).get(field)


def collect(products: Sequence[ProductDoc], name: str) -> List[ProductDoc]:
    """
    Members of a named collection.

    Sorted ascending on the collection's order column where a product has
    one; products without a value follow in fetch order.
    """
    member, order_field = COLLECTIONS[name]
    selected = [pair for pair in products if member(pair[0])]

    def sort_key(pair: ProductDoc):
        value = _order_value(pair[0], order_field)
        return (0, value) if value is not None else (1, 0)

    return sorted(selected, key=sort_key)


def build_homepage_bundle(
    categories: Sequence[CategoryDoc],
    products: Sequence[ProductDoc],
    stamp: SnapshotStamp,
) -> Dict[str, Any]:
    deals = []
    for product, doc in collect(products, "bestDeals"):
        deals.append({**doc, "discountPercentage": product.discount_percentage})

    return {
        "categories": [doc for _, doc in categories],
        "featuredProducts": [doc for _, doc in collect(products, "featured")],
        "dealProducts": deals,
        "trendingProducts": [doc for _, doc in collect(products, "trending")],
        "lastUpdated": stamp.last_updated,
        "version": stamp.version,
    }


def build_manifest(
    categories: Sequence[CategoryDoc],
    products: Sequence[ProductDoc],
    stamp: SnapshotStamp,
) -> Dict[str, Any]:
    return {
        "products": {p.id: doc for p, doc in products},
        "categories": {c.id: doc for c, doc in categories},
        "collections": {
            name: [p.id for p, _ in collect(products, name)] for name in COLLECTIONS
        },
        "lastUpdated": stamp.last_updated,
        "version": stamp.version,
    }


def empty_homepage_bundle(stamp: SnapshotStamp, **extra: Any) -> Dict[str, Any]:
    """The well-typed stand-in served when no homepage snapshot is available."""
    bundle = {
        "categories": [],
        "featuredProducts": [],
        "dealProducts": [],
        "trendingProducts": [],
        "lastUpdated": stamp.last_updated,
        "version": stamp.version,
    }
    bundle.update(extra)
    return bundle
