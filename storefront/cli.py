"""
Command-line entry points.

Usage:
    storefront sync [--strict]
    storefront invalidate --entity-id ID --action update
    storefront revalidate [--tags homepage products] [--path /products]
    storefront serve [--host 0.0.0.0] [--port 8000]
"""
import argparse
import asyncio
import json
from typing import List, Optional

from storefront.cache.cdn import CloudflarePurgeClient
from storefront.cache.invalidator import ENTITY_ACTIONS, CacheInvalidator
from storefront.cache.page_cache import LAYOUT, PAGE
from storefront.cache.revalidator import RemoteRevalidator
from storefront.core.config import StorefrontConfig, get_config
from storefront.core.errors import (
    CatalogFetchError,
    ConfigurationError,
    RevalidationError,
    SnapshotWriteError,
)
from storefront.data.catalog_reader import CatalogReader
from storefront.snapshot.builder import SnapshotBuilder
from storefront.snapshot.sanitizer import Sanitizer
from storefront.snapshot.store import SnapshotLayout
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient

logger = get_logger("cli")

DEFAULT_REVALIDATE_TAGS = ["homepage-categories", "products", "categories"]


def _remote_revalidator(config: StorefrontConfig) -> RemoteRevalidator:
    if not config.site_url:
        raise ConfigurationError("Missing required environment variables: SITE_URL")
    return RemoteRevalidator(
        config.site_url,
        secret=config.revalidate_secret,
        timeout=config.revalidate_timeout,
    )


async def run_sync(config: StorefrontConfig) -> int:
    config.require_database()
    client = SupabaseClient(config.supabase_url, config.supabase_key, timeout=config.database_timeout)
    builder = SnapshotBuilder(
        CatalogReader(client),
        SnapshotLayout(config.public_dir),
        sanitizer=Sanitizer(config.sanitize_rules),
        strict_writes=config.strict_writes,
    )
    try:
        result = await builder.build()
    finally:
        await client.aclose()

    print(f"Snapshot version {result.version} ({result.last_updated})")
    print(f"  written: {len(result.written)} files")
    if result.failed:
        print(f"  failed:  {len(result.failed)} files")
        for path in result.failed:
            print(f"    - {path}")
    return 0


async def run_invalidate(config: StorefrontConfig, entity_id: str, action: str) -> int:
    revalidator = _remote_revalidator(config)
    cdn = CloudflarePurgeClient.from_config(config)
    invalidator = CacheInvalidator(revalidator, cdn)
    try:
        result = await invalidator.on_entity_mutated(entity_id, action)
    finally:
        await revalidator.aclose()
        if cdn is not None:
            await cdn.aclose()

    print(json.dumps(result.model_dump(exclude_none=True), indent=2))
    return 0 if result.success else 1


async def run_revalidate(
    config: StorefrontConfig,
    tags: Optional[List[str]],
    path: Optional[str],
    kind: str,
) -> int:
    revalidator = _remote_revalidator(config)
    try:
        if path:
            await revalidator.revalidate_path(path, kind)
            print(f"Revalidated path {path} [{kind}]")
        else:
            tags = tags or DEFAULT_REVALIDATE_TAGS
            await revalidator.revalidate_tags(tags)
            print(f"Revalidated tags: {', '.join(tags)}")
    finally:
        await revalidator.aclose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront", description="Storefront catalog snapshot and cache tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Rebuild the JSON catalog snapshot")
    sync.add_argument("--strict", action="store_true", help="Fail on the first file write error")

    inv = sub.add_parser("invalidate", help="Invalidate caches after a product change")
    inv.add_argument("--entity-id", required=True, help="Id of the changed product")
    inv.add_argument("--action", required=True, choices=ENTITY_ACTIONS)

    reval = sub.add_parser("revalidate", help="Ask the running site to revalidate tags or a path")
    reval.add_argument("--tags", nargs="+", help=f"Tags to revalidate (default: {' '.join(DEFAULT_REVALIDATE_TAGS)})")
    reval.add_argument("--path", help="Path to revalidate (takes precedence over --tags)")
    reval.add_argument("--type", dest="kind", choices=(PAGE, LAYOUT), default=PAGE)

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("storefront.api.server:app", host=args.host, port=args.port)
        return 0

    try:
        if args.command == "sync":
            if args.strict:
                config.strict_writes = True
            return asyncio.run(run_sync(config))
        if args.command == "invalidate":
            return asyncio.run(run_invalidate(config, args.entity_id, args.action))
        return asyncio.run(run_revalidate(config, args.tags, args.path, args.kind))
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except CatalogFetchError as e:
        logger.error(f"Catalog read failed, snapshot left unchanged: {e}")
        return 1
    except SnapshotWriteError as e:
        logger.error(f"Snapshot rebuild aborted: {e}")
        return 1
    except RevalidationError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
