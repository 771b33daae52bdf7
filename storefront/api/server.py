"""
FastAPI server for the storefront catalog service.

Provides the cache-invalidation and revalidation hooks called after catalog
writes, the static-data endpoints backed by the JSON snapshot, storefront
reads with snapshot-first / live-query fallback, and the merchant feed.

Usage:
    python -m storefront.api.server
    # or
    uvicorn storefront.api.server:app --reload --port 8000
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from storefront.api.models import (
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
    RebuildRequest,
    RebuildResponse,
    RevalidateRequest,
    RevalidateResponse,
)
from storefront.api.services import StorefrontServices
from storefront.cache.invalidator import ENTITY_ACTIONS, InvalidationScope
from storefront.core.config import StorefrontConfig, get_config
from storefront.core.errors import CatalogFetchError, ConfigurationError
from storefront.feed.merchant_feed import MerchantFeedExporter
from storefront.snapshot.builder import load_catalog
from storefront.snapshot.projections import SnapshotStamp, build_manifest, empty_homepage_bundle
from storefront.snapshot.store import read_json
from storefront.utils.logger import get_logger

logger = get_logger("api.server")

STATIC_CACHE_CONTROL = "public, max-age=3600, s-maxage=86400, stale-while-revalidate=43200"
CDN_CACHE_CONTROL = "public, max-age=86400"
FALLBACK_CACHE_CONTROL = "public, max-age=60"
FEED_CACHE_CONTROL = "public, max-age=3600, stale-while-revalidate=86400"

HOMEPAGE_PATH = "/static-data/homepage"
FEED_PATH = "/feed.xml"


def get_services(request: Request) -> StorefrontServices:
    return request.app.state.services


def _timestamp(services: StorefrontServices) -> str:
    return SnapshotStamp.from_timestamp(services.clock()).last_updated


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _json_body(request: Request, allow_empty: bool = False) -> Tuple[Optional[Dict[str, Any]], Optional[JSONResponse]]:
    """Parse a JSON object body; returns (body, None) or (None, error response)."""
    raw = await request.body()
    if allow_empty and not raw.strip():
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        return None, _error(400, "Invalid JSON body")
    if not isinstance(body, dict):
        return None, _error(400, "Request body must be a JSON object")
    return body, None


def _secret_rejected(services: StorefrontServices, secret: Optional[str]) -> bool:
    # Only a supplied secret is checked; an absent one is let through.
    return bool(secret) and secret != services.config.revalidate_secret


def create_app(
    config: Optional[StorefrontConfig] = None,
    services: Optional[StorefrontServices] = None,
) -> FastAPI:
    """Build the FastAPI application around one StorefrontServices container."""
    if services is None:
        services = StorefrontServices(config or get_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Storefront API starting up")
        yield
        await services.aclose()
        logger.info("Storefront API shut down")

    app = FastAPI(
        title="Storefront Catalog API",
        description="Catalog snapshot, cache invalidation and storefront reads",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Enable CORS for the storefront frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Configuration error on {request.url.path}: {exc}")
        return _error(503, str(exc))

    @app.exception_handler(CatalogFetchError)
    async def catalog_error_handler(request: Request, exc: CatalogFetchError):
        logger.error(f"Catalog read failed on {request.url.path}: {exc}")
        return _error(502, "Failed to fetch catalog data", details=str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return _error(500, "Internal server error", details=str(exc))

    app.add_api_route("/health", health, methods=["GET"], response_model=HealthResponse)
    app.add_api_route("/cache/invalidate", invalidate_cache, methods=["POST"])
    app.add_api_route("/revalidate", revalidate_post, methods=["POST"])
    app.add_api_route("/revalidate", revalidate_get, methods=["GET"])
    app.add_api_route("/static-data/manifest", static_manifest, methods=["GET"])
    app.add_api_route(HOMEPAGE_PATH, static_homepage, methods=["GET"])
    app.add_api_route("/static-data/rebuild", rebuild_static_data, methods=["POST"])
    app.add_api_route("/products/{slug}", get_product, methods=["GET"])
    app.add_api_route("/categories/{slug}", get_category, methods=["GET"])
    app.add_api_route(FEED_PATH, merchant_feed, methods=["GET"])
    return app


# API Endpoints

async def health():
    """Health check endpoint."""
    return HealthResponse()


async def invalidate_cache(request: Request, services: StorefrontServices = Depends(get_services)):
    """
    Invalidate caches after a product create/update/delete.

    Body: {"productId" | "entityId": "...", "action": "create|update|delete"}
    """
    body, error = await _json_body(request)
    if error is not None:
        return error
    try:
        payload = InvalidateRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, "Invalid request body", details=str(e))

    missing = []
    if payload.entity_id is None:
        missing.append("productId")
    if not payload.action:
        missing.append("action")
    if missing:
        return _error(400, "productId and action are required", missing=missing)
    if payload.action not in ENTITY_ACTIONS:
        return _error(400, f"Invalid action: {payload.action}. Expected one of {', '.join(ENTITY_ACTIONS)}")

    try:
        result = await services.invalidator.on_entity_mutated(payload.entity_id, payload.action)
    except Exception as e:
        logger.exception(f"Error in /cache/invalidate: {e}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "Internal server error",
            "message": str(e),
            "timestamp": _timestamp(services),
        })

    response = InvalidateResponse(
        success=result.success,
        message="Cache invalidated successfully" if result.success else "Cache invalidation failed",
        operations=result.operations,
        timestamp=_timestamp(services),
        error=result.error,
    )
    status = 200 if result.success else 500
    return JSONResponse(status_code=status, content=response.model_dump(exclude_none=True))


async def _revalidate(services: StorefrontServices, payload: RevalidateRequest):
    if _secret_rejected(services, payload.secret):
        logger.warning("Rejected revalidation request with invalid secret")
        return _error(401, "Invalid secret token")

    revalidator = services.revalidator
    try:
        if payload.path:
            await revalidator.revalidate_path(payload.path, payload.type)
            message = f"Path {payload.path} revalidated"
        elif payload.tag:
            await revalidator.revalidate_tags([payload.tag])
            message = f"Tag {payload.tag} revalidated"
        elif payload.tags:
            await revalidator.revalidate_tags(payload.tags)
            message = f"Tags {', '.join(payload.tags)} revalidated"
        else:
            return _error(400, "Missing path, tag, or tags parameter")
    except Exception as e:
        logger.error(f"Revalidation error: {e}")
        return _error(500, "Revalidation failed", details=str(e))

    return RevalidateResponse(message=message, now=int(services.clock() * 1000))


async def revalidate_post(request: Request, services: StorefrontServices = Depends(get_services)):
    """Revalidate by path, tag or tags (first present wins)."""
    body, error = await _json_body(request)
    if error is not None:
        return error
    try:
        payload = RevalidateRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, "Invalid request body", details=str(e))
    return await _revalidate(services, payload)


async def revalidate_get(
    path: Optional[str] = None,
    tag: Optional[str] = None,
    secret: Optional[str] = None,
    kind: str = Query(default="page", alias="type"),
    services: StorefrontServices = Depends(get_services),
):
    """Query-string variant of POST /revalidate (no `tags` list)."""
    try:
        payload = RevalidateRequest(path=path, tag=tag, secret=secret, type=kind)
    except ValidationError as e:
        return _error(400, "Invalid query parameters", details=str(e))
    return await _revalidate(services, payload)


async def static_manifest(services: StorefrontServices = Depends(get_services)):
    """Rebuild and return the catalog manifest from live data."""
    try:
        category_docs, product_docs = await load_catalog(services.reader, services.sanitizer)
    except CatalogFetchError as e:
        logger.error(f"Error generating manifest: {e}")
        return _error(500, "Failed to generate manifest")

    stamp = SnapshotStamp.from_timestamp(services.clock())
    manifest = build_manifest(category_docs, product_docs, stamp)
    return JSONResponse(content=manifest, headers={
        "Cache-Control": STATIC_CACHE_CONTROL,
        "CDN-Cache-Control": CDN_CACHE_CONTROL,
        "ETag": f'"manifest-{stamp.version}"',
    })


async def static_homepage(services: StorefrontServices = Depends(get_services)):
    """Serve the homepage bundle from the page cache or the snapshot file."""
    headers = {
        "Cache-Control": STATIC_CACHE_CONTROL,
        "CDN-Cache-Control": CDN_CACHE_CONTROL,
        "CF-Cache-Tag": "homepage-static",
    }
    cached = services.page_cache.get(HOMEPAGE_PATH)
    if cached is not None:
        return JSONResponse(content=cached, headers=headers)

    try:
        bundle = await asyncio.to_thread(read_json, services.layout.homepage_path)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading static homepage data: {e}")
        bundle = None

    if not isinstance(bundle, dict):
        stamp = SnapshotStamp.from_timestamp(services.clock())
        fallback = empty_homepage_bundle(stamp, error="Static data not available")
        return JSONResponse(content=fallback, headers={"Cache-Control": FALLBACK_CACHE_CONTROL})

    services.page_cache.put(HOMEPAGE_PATH, bundle, tags=("homepage", "homepage-categories"))
    return JSONResponse(content=bundle, headers=headers)


async def rebuild_static_data(request: Request, services: StorefrontServices = Depends(get_services)):
    """Rebuild the JSON snapshot, then invalidate the whole catalog."""
    body, error = await _json_body(request, allow_empty=True)
    if error is not None:
        return error
    try:
        payload = RebuildRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, "Invalid request body", details=str(e))
    if _secret_rejected(services, payload.secret):
        logger.warning("Rejected snapshot rebuild with invalid secret")
        return _error(401, "Invalid secret token")

    result = await services.snapshot_builder.build()
    invalidation = await services.invalidator.invalidate(InvalidationScope.catalog())
    return RebuildResponse(
        success=result.complete,
        written=result.written,
        failed=result.failed,
        version=result.version,
        lastUpdated=result.last_updated,
        invalidation=invalidation.model_dump(exclude_none=True),
    )


async def get_product(slug: str, services: StorefrontServices = Depends(get_services)):
    """Serve an active product: page cache, then snapshot file, then a live query."""
    page_path = f"/products/{slug}"
    tags = ("products", f"product-{slug}")

    cached = services.page_cache.get(page_path)
    if cached is not None:
        return cached

    try:
        snapshot_path = services.layout.product_path(slug)
    except ValueError:
        return _error(404, "Product not found")

    cacheable = True
    doc = await services.read_fresh_snapshot(snapshot_path)
    if doc is None:
        async def load():
            products = await services.reader.fetch_products(slugs=[slug])
            if not products:
                return None
            product = products[0]
            if product.category_id:
                found = await services.reader.fetch_categories(active_only=True, ids=[product.category_id])
                product = product.model_copy(update={"categories": found[0] if found else None})
            return product

        product = await services.cache.get_or_load(
            ("product", slug), load, ttl=services.config.query_cache_ttl, tags=tags
        )
        # Skip the page entry when an invalidation landed during the load.
        cacheable = ("product", slug) in services.cache
        doc = services.sanitizer.sanitize(product.model_dump(mode="json")) if product else None

    if doc is None or doc.get("status") != "active":
        return _error(404, "Product not found")

    if cacheable:
        services.page_cache.put(page_path, doc, tags=tags)
    return doc


async def get_category(slug: str, services: StorefrontServices = Depends(get_services)):
    """Serve an active category: page cache, then snapshot file, then a live query."""
    page_path = f"/category/{slug}"
    tags = ("categories", f"category-{slug}")

    cached = services.page_cache.get(page_path)
    if cached is not None:
        return cached

    try:
        snapshot_path = services.layout.category_path(slug)
    except ValueError:
        return _error(404, "Category not found")

    cacheable = True
    doc = await services.read_fresh_snapshot(snapshot_path)
    if doc is None:
        async def load():
            found = await services.reader.fetch_categories(active_only=True, slugs=[slug])
            return found[0] if found else None

        category = await services.cache.get_or_load(
            ("category", slug), load, ttl=services.config.query_cache_ttl, tags=tags
        )
        cacheable = ("category", slug) in services.cache
        doc = services.sanitizer.sanitize(category.model_dump(mode="json")) if category else None

    if doc is None or doc.get("is_active") is False:
        return _error(404, "Category not found")

    if cacheable:
        services.page_cache.put(page_path, doc, tags=tags)
    return doc


async def merchant_feed(services: StorefrontServices = Depends(get_services)):
    """Google Merchant Center RSS feed of active products."""
    headers = {"Cache-Control": FEED_CACHE_CONTROL}
    cached = services.page_cache.get(FEED_PATH)
    if cached is not None:
        return Response(content=cached, media_type="application/xml", headers=headers)

    config = services.config
    exporter = MerchantFeedExporter(
        site_url=config.site_url or "",
        site_name=config.site_name,
        currency=config.currency,
        storage_url=config.supabase_url,
    )
    try:
        products = await services.reader.fetch_products(status="active", join_categories=True)
    except CatalogFetchError as e:
        logger.error(f"Error fetching products for feed: {e}")
        return Response(content=exporter.export_xml([]), media_type="application/xml", headers=headers)

    xml = exporter.export_xml([services.sanitized_product(p) for p in products])
    services.page_cache.put(FEED_PATH, xml, tags=("products", "categories"))
    return Response(content=xml, media_type="application/xml", headers=headers)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    print("=" * 60)
    print("Storefront Catalog API")
    print("=" * 60)
    print("API Documentation: http://localhost:8000/docs")
    print("Health endpoint:   http://localhost:8000/health")
    print("")
    print("Environment variables:")
    print("  SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY  - catalog database")
    print("  CLOUDFLARE_ZONE_ID / CLOUDFLARE_API_TOKEN - optional CDN purge")
    print("  REVALIDATE_SECRET                         - shared revalidation secret")
    print("=" * 60)

    uvicorn.run(app, host="0.0.0.0", port=8000)
