"""
HTTP-level tests for the storefront API using FastAPI's TestClient.

The catalog reader is the in-memory FakeReader from conftest; snapshot
files go to a per-test temp directory.
"""

import pytest
from fastapi.testclient import TestClient

from storefront.api.server import create_app
from storefront.api.services import StorefrontServices
from storefront.cache.invalidator import CacheInvalidator
from storefront.cache.page_cache import PAGE
from storefront.cache.revalidator import Revalidator


class FailingRevalidator(Revalidator):
    async def revalidate_tags(self, tags):
        raise RuntimeError("revalidation backend down")

    async def revalidate_path(self, path, kind=PAGE):
        raise RuntimeError("revalidation backend down")


@pytest.fixture
def services(config, reader, wall_clock):
    return StorefrontServices(config, reader=reader, clock=wall_clock)


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── POST /cache/invalidate ───────────────────────────────────────────────

class TestInvalidateEndpoint:
    def test_missing_fields(self, client):
        response = client.post("/cache/invalidate", json={})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "productId and action are required"
        assert body["missing"] == ["productId", "action"]

    def test_missing_action(self, client):
        response = client.post("/cache/invalidate", json={"productId": "p1"})
        assert response.status_code == 400
        assert response.json()["missing"] == ["action"]

    def test_invalid_json(self, client):
        response = client.post(
            "/cache/invalidate", content="{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_unknown_action(self, client):
        response = client.post("/cache/invalidate", json={"productId": "p1", "action": "archive"})
        assert response.status_code == 400

    def test_success_clears_page_cache(self, client, services):
        services.page_cache.put("/", {"home": True}, tags=["homepage"])
        services.page_cache.put("/products/robot-kit", {"slug": "robot-kit"}, tags=["products"])
        response = client.post("/cache/invalidate", json={"productId": "p1", "action": "update"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["operations"] == {"revalidation": True, "cloudflare": False}
        assert body["timestamp"].endswith("Z")
        assert services.page_cache.get("/") is None
        assert services.page_cache.get("/products/robot-kit") is None

    def test_entity_id_alias(self, client):
        response = client.post("/cache/invalidate", json={"entityId": 7, "action": "delete"})
        assert response.status_code == 200

    def test_failed_invalidation_is_500(self, config, reader, wall_clock):
        services = StorefrontServices(
            config, reader=reader, clock=wall_clock, invalidator=CacheInvalidator(FailingRevalidator())
        )
        response = TestClient(create_app(services=services)).post(
            "/cache/invalidate", json={"productId": "p1", "action": "create"}
        )
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["operations"] == {"revalidation": False, "cloudflare": False}


# ── /revalidate ──────────────────────────────────────────────────────────

class TestRevalidateEndpoint:
    def test_wrong_secret_is_rejected_before_any_work(self, client, services):
        services.page_cache.put("/products", {"x": 1}, tags=["products"])
        response = client.post("/revalidate", json={"secret": "wrong", "tag": "products"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid secret token"}
        assert services.page_cache.get("/products") is not None

    def test_right_secret(self, client):
        response = client.post("/revalidate", json={"secret": "right", "tag": "products"})
        assert response.status_code == 200

    def test_path_takes_precedence_over_tags(self, client, services):
        services.page_cache.put("/products/robot-kit", {"x": 1}, tags=["other"])
        services.page_cache.put("/about", {"x": 2}, tags=["products"])
        response = client.post("/revalidate", json={"path": "/products/robot-kit", "tag": "products"})
        assert response.status_code == 200
        body = response.json()
        assert body["revalidated"] is True
        assert isinstance(body["now"], int)
        assert body["message"] == "Path /products/robot-kit revalidated"
        assert services.page_cache.get("/products/robot-kit") is None
        assert services.page_cache.get("/about") is not None

    def test_tags_list(self, client, services):
        services.page_cache.put("/a", 1, tags=["products"])
        services.page_cache.put("/b", 2, tags=["categories"])
        response = client.post("/revalidate", json={"tags": ["products", "categories"]})
        assert response.status_code == 200
        assert len(services.cache) == 0

    def test_layout_type(self, client, services):
        services.page_cache.put("/products/robot-kit", 1)
        client.post("/revalidate", json={"path": "/products", "type": "layout"})
        assert services.page_cache.get("/products/robot-kit") is None

    def test_nothing_to_revalidate(self, client):
        assert client.post("/revalidate", json={}).status_code == 400

    def test_get_variant(self, client, services):
        services.page_cache.put("/x", 1, tags=["homepage"])
        response = client.get("/revalidate", params={"tag": "homepage"})
        assert response.status_code == 200
        assert services.page_cache.get("/x") is None
        assert client.get("/revalidate", params={"tag": "homepage", "secret": "nope"}).status_code == 401
        assert client.get("/revalidate").status_code == 400

    def test_backend_error(self, client, services):
        services.revalidator = FailingRevalidator()
        response = client.post("/revalidate", json={"tag": "products"})
        assert response.status_code == 500
        assert response.json()["error"] == "Revalidation failed"


# ── /static-data ─────────────────────────────────────────────────────────

class TestStaticData:
    def test_manifest(self, client):
        response = client.get("/static-data/manifest")
        assert response.status_code == 200
        body = response.json()
        assert set(body["products"]) == {"p1", "p2", "p3"}
        assert body["collections"]["featured"] == ["p2", "p1"]
        assert response.headers["etag"] == f'"manifest-{body["version"]}"'
        assert "s-maxage=86400" in response.headers["cache-control"]
        assert response.headers["cdn-cache-control"] == "public, max-age=86400"

    def test_manifest_read_failure(self, client, reader):
        reader.fail = True
        response = client.get("/static-data/manifest")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate manifest"}

    def test_manifest_without_database_config(self, tmp_path):
        from storefront.core.config import StorefrontConfig

        app = create_app(config=StorefrontConfig(public_dir=str(tmp_path)))
        assert TestClient(app).get("/static-data/manifest").status_code == 503

    def test_homepage_fallback(self, client):
        response = client.get("/static-data/homepage")
        assert response.status_code == 200
        body = response.json()
        assert body["error"] == "Static data not available"
        assert body["featuredProducts"] == []
        assert "version" in body and "lastUpdated" in body
        assert response.headers["cache-control"] == "public, max-age=60"

    def test_rebuild_then_homepage(self, client):
        response = client.post("/static-data/rebuild", json={"secret": "right"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["failed"] == []
        assert body["invalidation"]["success"] is True

        response = client.get("/static-data/homepage")
        assert response.status_code == 200
        assert response.headers["cf-cache-tag"] == "homepage-static"
        homepage = response.json()
        assert "error" not in homepage
        assert [p["slug"] for p in homepage["featuredProducts"]] == ["puzzle-box", "robot-kit"]
        assert homepage["version"] == body["version"]

    def test_rebuild_drops_cached_homepage(self, client, services):
        client.post("/static-data/rebuild")
        first = client.get("/static-data/homepage").json()
        services.clock.advance(5)
        client.post("/static-data/rebuild")
        second = client.get("/static-data/homepage").json()
        assert second["version"] > first["version"]

    def test_rebuild_wrong_secret(self, client):
        response = client.post("/static-data/rebuild", json={"secret": "wrong"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid secret token"

    def test_rebuild_read_failure(self, client, reader):
        reader.fail = True
        assert client.post("/static-data/rebuild").status_code == 502


# ── Storefront reads ─────────────────────────────────────────────────────

class TestProductReads:
    def test_live_query_then_page_cache(self, client, reader):
        response = client.get("/products/robot-kit")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Robot Kit by Sokohub"
        assert body["categories"]["slug"] == "toys"
        calls = len(reader.calls)

        assert client.get("/products/robot-kit").json() == body
        assert len(reader.calls) == calls

    def test_invalidation_forces_a_fresh_read(self, client, reader):
        client.get("/products/robot-kit")
        calls = len(reader.calls)
        client.post("/cache/invalidate", json={"productId": "p1", "action": "update"})
        client.get("/products/robot-kit")
        assert len(reader.calls) > calls

    def test_invalidation_during_live_read_is_not_cached(self, client, reader, services):
        original = reader.fetch_products

        async def fetch_then_invalidate(*args, **kwargs):
            result = await original(*args, **kwargs)
            services.page_cache.revalidate_tag("products")
            return result

        reader.fetch_products = fetch_then_invalidate
        response = client.get("/products/robot-kit")
        assert response.status_code == 200
        assert response.json()["slug"] == "robot-kit"
        assert services.page_cache.get("/products/robot-kit") is None
        assert ("product", "robot-kit") not in services.cache

    def test_served_from_snapshot(self, client, reader):
        client.post("/static-data/rebuild")
        calls = len(reader.calls)
        response = client.get("/products/puzzle-box")
        assert response.status_code == 200
        assert response.json()["slug"] == "puzzle-box"
        assert len(reader.calls) == calls

    def test_stale_snapshot_falls_back_to_live(self, client, reader, services):
        client.post("/static-data/rebuild")
        services.page_cache.store.clear()
        services.clock.advance(services.config.snapshot_max_age + 1)
        calls = len(reader.calls)
        assert client.get("/products/puzzle-box").status_code == 200
        assert len(reader.calls) > calls

    def test_draft_product_is_404(self, client):
        assert client.get("/products/draft-doll").status_code == 404

    def test_draft_product_in_snapshot_is_404(self, client):
        client.post("/static-data/rebuild")
        assert client.get("/products/draft-doll").status_code == 404

    def test_unknown_product_is_404(self, client):
        assert client.get("/products/nope").status_code == 404

    def test_unsafe_slug_is_404(self, client):
        assert client.get("/products/a..b").status_code == 404


class TestCategoryReads:
    def test_active_category(self, client):
        response = client.get("/categories/toys")
        assert response.status_code == 200
        assert response.json()["description"] == "All Sokohub products"

    def test_inactive_category_is_404(self, client):
        assert client.get("/categories/retired").status_code == 404

    def test_category_scope_tags(self, client, services):
        client.get("/categories/toys")
        assert services.page_cache.get("/category/toys") is not None
        services.page_cache.revalidate_tag("category-toys")
        assert services.page_cache.get("/category/toys") is None


class TestMerchantFeed:
    def test_feed(self, client):
        response = client.get("/feed.xml")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<g:id>p1</g:id>" in response.text
        assert "<g:id>p3</g:id>" not in response.text
        assert "Sokohub" in response.text

    def test_feed_read_failure_is_empty_feed(self, client, reader):
        reader.fail = True
        response = client.get("/feed.xml")
        assert response.status_code == 200
        assert "No active products found" in response.text
