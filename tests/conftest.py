"""Pytest configuration and shared fixtures for storefront tests."""

import time
from typing import Iterable, List, Optional

import pytest

from storefront.core.config import StorefrontConfig
from storefront.core.errors import CatalogFetchError
from storefront.data.models import Category, Product, category_from_row, product_from_row


# ---------------------------------------------------------------------------
# Seed catalog: three categories (one inactive) and three products
# (two featured, one deal, one draft).
# ---------------------------------------------------------------------------

CATEGORY_ROWS = [
    {"id": "c1", "slug": "toys", "name": "Toys", "description": "All Toto Toys products", "is_active": True},
    {"id": "c2", "slug": "games", "name": "Games", "description": None, "is_active": True},
    {"id": "c3", "slug": "retired", "name": "Retired", "description": None, "is_active": False},
]

PRODUCT_ROWS = [
    {
        "id": "p1",
        "slug": "robot-kit",
        "name": "Robot Kit by Toto Toys",
        "description": "Build it yourself. More at toto.co.ke",
        "price": 2500,
        "compare_at_price": None,
        "stock": 5,
        "status": "active",
        "is_featured": True,
        "featured_order": 2,
        "is_trending": True,
        "trending_order": 1,
        "images": ["https://cdn.example.com/robot.jpg"],
        "category_id": "c1",
    },
    {
        "id": "p2",
        "slug": "puzzle-box",
        "name": "Puzzle Box",
        "description": "A 500 piece puzzle",
        "price": 800,
        "compare_at_price": 1000,
        "stock": 0,
        "status": "active",
        "is_featured": True,
        "featured_order": 1,
        "is_trending": False,
        "images": [{"web_image_url": "products/puzzle.jpg", "feed_image_url": "products/puzzle-feed.jpg"}],
        "category_id": "c2",
    },
    {
        "id": "p3",
        "slug": "draft-doll",
        "name": "Draft Doll",
        "description": None,
        "price": 1200,
        "compare_at_price": None,
        "stock": 3,
        "status": "draft",
        "is_featured": False,
        "images": [],
        "category_id": "c3",
    },
]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeReader:
    """In-memory stand-in for CatalogReader with the same query surface."""

    def __init__(self, categories: List[Category], products: List[Product]):
        self.categories = list(categories)
        self.products = list(products)
        self.fail = False
        self.calls: List[str] = []

    async def fetch_categories(
        self,
        active_only: bool = True,
        ids: Optional[Iterable[str]] = None,
        slugs: Optional[Iterable[str]] = None,
    ) -> List[Category]:
        self.calls.append("categories")
        if self.fail:
            raise CatalogFetchError("database unavailable")
        result = self.categories
        if active_only:
            result = [c for c in result if c.is_active]
        if ids is not None:
            wanted = set(ids)
            result = [c for c in result if c.id in wanted]
        if slugs is not None:
            wanted = set(slugs)
            result = [c for c in result if c.slug in wanted]
        return list(result)

    async def fetch_products(
        self,
        ids: Optional[Iterable[str]] = None,
        slugs: Optional[Iterable[str]] = None,
        status: Optional[str] = None,
        join_categories: bool = False,
    ) -> List[Product]:
        self.calls.append("products")
        if self.fail:
            raise CatalogFetchError("database unavailable")
        result = self.products
        if ids is not None:
            wanted = set(ids)
            result = [p for p in result if p.id in wanted]
        if slugs is not None:
            wanted = set(slugs)
            result = [p for p in result if p.slug in wanted]
        if status is not None:
            result = [p for p in result if p.status == status]
        if join_categories:
            by_id = {c.id: c for c in self.categories}
            result = [
                p.model_copy(update={
                    "categories": by_id.get(p.category_id),
                    "all_categories": [by_id[p.category_id]] if p.category_id in by_id else [],
                })
                for p in result
            ]
        return list(result)


@pytest.fixture
def categories() -> List[Category]:
    return [category_from_row(r) for r in CATEGORY_ROWS]


@pytest.fixture
def products() -> List[Product]:
    return [product_from_row(r) for r in PRODUCT_ROWS]


@pytest.fixture
def reader(categories, products) -> FakeReader:
    return FakeReader(categories, products)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path) -> StorefrontConfig:
    return StorefrontConfig(
        supabase_url="https://db.example.supabase.co",
        supabase_key="service-key",
        site_url="https://shop.example.com",
        site_name="Sokohub Kenya",
        revalidate_secret="right",
        public_dir=str(tmp_path / "public"),
    )


@pytest.fixture
def wall_clock() -> FakeClock:
    """Fake clock starting at the real time, so freshly written files are not stale."""
    return FakeClock(time.time())
