"""
Google Merchant Center Product Feed Export.

Exports active catalog products as an RSS 2.0 feed with the Google `g:`
namespace (and as JSON for programmatic access).

Fields per item:
- id, title, description, link
- image_link (+ additional_image_link), preferring the feed-optimized image
- availability: in stock | out of stock
- price, plus sale_price when the product is discounted
- product_type (category names), condition

Image paths that are not absolute URLs are resolved against the public
Supabase storage bucket.
"""

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storefront.data.models import Product

DEFAULT_BUCKET = "product-images"


class MerchantFeedExporter:
    """
    Export products in Google Merchant Center compatible format.
    """

    def __init__(
        self,
        site_url: str,
        site_name: str = "Storefront",
        currency: str = "KES",
        storage_url: Optional[str] = None,
        bucket: str = DEFAULT_BUCKET,
    ):
        """
        Initialize exporter.

        Args:
            site_url: Base URL for product links
            site_name: Channel title prefix
            currency: ISO currency code appended to prices
            storage_url: Supabase project URL used to resolve bucket paths
            bucket: Storage bucket holding product images
        """
        self.site_url = site_url.rstrip("/")
        self.site_name = site_name
        self.currency = currency
        self.storage_url = storage_url.rstrip("/") if storage_url else None
        self.bucket = bucket

    def export_json(self, products: List[Product]) -> Dict[str, Any]:
        """
        Export products as JSON feed.

        Args:
            products: Product records (inactive ones are skipped)

        Returns:
            JSON feed with products array
        """
        items = [self._item(p) for p in products if p.is_visible]
        return {
            "version": "1.0",
            "generated_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "total_count": len(items),
            "products": items,
        }

    def export_xml(self, products: List[Product]) -> str:
        """
        Export products as an RSS 2.0 feed.

        Args:
            products: Product records (inactive ones are skipped)

        Returns:
            XML string
        """
        root = ET.Element("rss", {
            "version": "2.0",
            "xmlns:g": "http://base.google.com/ns/1.0",
        })
        channel = ET.SubElement(root, "channel")
        ET.SubElement(channel, "title").text = f"{self.site_name} Product Feed"
        ET.SubElement(channel, "link").text = self.site_url

        items = [self._item(p) for p in products if p.is_visible]
        if not items:
            ET.SubElement(channel, "description").text = "No active products found"
        else:
            ET.SubElement(channel, "description").text = f"{self.site_name} product catalog"

        for data in items:
            item = ET.SubElement(channel, "item")
            ET.SubElement(item, "g:id").text = data["id"]
            ET.SubElement(item, "g:title").text = data["title"]
            ET.SubElement(item, "g:description").text = data["description"]
            ET.SubElement(item, "g:link").text = data["link"]
            if data.get("image_link"):
                ET.SubElement(item, "g:image_link").text = data["image_link"]
            for extra in data.get("additional_image_links", []):
                ET.SubElement(item, "g:additional_image_link").text = extra
            ET.SubElement(item, "g:availability").text = data["availability"]
            ET.SubElement(item, "g:price").text = data["price"]
            if data.get("sale_price"):
                ET.SubElement(item, "g:sale_price").text = data["sale_price"]
            if data.get("product_type"):
                ET.SubElement(item, "g:product_type").text = data["product_type"]
            ET.SubElement(item, "g:condition").text = "new"

        ET.indent(root, space="  ")
        body = ET.tostring(root, encoding="unicode", method="xml")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body

    def _item(self, product: Product) -> Dict[str, Any]:
        images = self._image_urls(product)
        # Discounted products list the compare-at price as the regular price.
        if product.has_discount:
            price = self._money(product.compare_at_price)
            sale_price = self._money(product.price)
        else:
            price = self._money(product.price)
            sale_price = None

        categories = product.all_categories or ([product.categories] if product.categories else [])
        item = {
            "id": product.id,
            "title": product.name,
            "description": product.description or "",
            "link": f"{self.site_url}/products/{product.slug}",
            "image_link": images[0] if images else None,
            "additional_image_links": images[1:10],
            "availability": self._map_availability(product),
            "price": price,
            "sale_price": sale_price,
            "product_type": " > ".join(c.name for c in categories) or None,
        }
        return item

    def _money(self, value: float) -> str:
        return f"{value:.2f} {self.currency}"

    def _map_availability(self, product: Product) -> str:
        """
        Map status and stock to Google Merchant Center availability values.

        A null stock means the product is not stock-tracked.
        """
        if product.is_visible and (product.stock is None or product.stock > 0):
            return "in stock"
        return "out of stock"

    def _image_urls(self, product: Product) -> List[str]:
        urls = []
        for image in product.image_objects():
            raw = image.feed_image_url or image.web_image_url
            if not raw or "undefined" in raw:
                continue
            url = self._resolve(raw.strip())
            if url and url not in urls:
                urls.append(url)
        return urls

    def _resolve(self, path: str) -> Optional[str]:
        if path.lower().startswith(("http://", "https://")):
            return path
        if not self.storage_url:
            return None
        path = path.lstrip("/")
        if path.startswith(f"{self.bucket}/"):
            path = path[len(self.bucket) + 1:]
        return f"{self.storage_url}/storage/v1/object/public/{self.bucket}/{path}"
