"""
Record types for catalog rows and invalidation results.

Rows coming back from PostgREST are mapped exactly once, at the reader
boundary, through product_from_row / category_from_row. Columns this module
does not name (featured_order, sku, metadata, ...) are kept as extra fields
so snapshots stay a faithful projection of the source rows.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ProductImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    web_image_url: Optional[str] = None
    feed_image_url: Optional[str] = None
    alt: Optional[str] = None


class Category(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    slug: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = True


class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    slug: str
    name: str
    description: Optional[str] = None
    price: float = Field(default=0.0, ge=0)
    compare_at_price: Optional[float] = None
    stock: Optional[int] = None
    # Kept as text: rows written by older admin builds use other values.
    status: Optional[str] = None
    is_featured: Optional[bool] = None
    is_trending: Optional[bool] = None
    is_deal: Optional[bool] = None
    # Either plain URL strings or ProductImage-shaped objects.
    images: Optional[List[Any]] = None
    category_id: Optional[str] = None
    tags: Optional[Any] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Joined primary category; key name matches the PostgREST embed.
    categories: Optional[Category] = None
    # Primary + junction-table categories, deduplicated by id.
    all_categories: List[Category] = Field(default_factory=list, exclude=True)

    @property
    def is_visible(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    @property
    def has_discount(self) -> bool:
        return self.compare_at_price is not None and self.compare_at_price > self.price

    @property
    def discount_percentage(self) -> int:
        if not self.has_discount:
            return 0
        return round((self.compare_at_price - self.price) / self.compare_at_price * 100)

    def image_objects(self) -> List[ProductImage]:
        """Normalize `images` to ProductImage records, skipping empty entries."""
        result = []
        for img in self.images or []:
            if isinstance(img, str) and img.strip():
                result.append(ProductImage(web_image_url=img.strip()))
            elif isinstance(img, dict):
                if not img.get("web_image_url") and img.get("url"):
                    img = {**img, "web_image_url": img["url"]}
                result.append(ProductImage.model_validate(img))
        return result


class InvalidationOperations(BaseModel):
    revalidation: bool = False
    cloudflare: bool = False


class CacheInvalidationResult(BaseModel):
    success: bool = False
    operations: InvalidationOperations = Field(default_factory=InvalidationOperations)
    error: Optional[str] = None


def category_from_row(row: Dict[str, Any]) -> Category:
    return Category.model_validate(row)


def product_from_row(row: Dict[str, Any]) -> Product:
    data = dict(row)
    embedded = data.get("categories")
    # A to-many embed arrives as a list; the primary category is joined later.
    if isinstance(embedded, list):
        data.pop("categories")
    return Product.model_validate(data)
