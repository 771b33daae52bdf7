"""
Storefront catalog snapshot and cache-invalidation service.

Keeps a denormalized JSON projection of the product catalog in sync with
the Supabase tables and evicts stale cached pages after catalog writes.
"""
from storefront.cache.invalidator import CacheInvalidator, InvalidationScope
from storefront.core.config import StorefrontConfig, get_config, set_config
from storefront.snapshot.builder import SnapshotBuilder, SnapshotResult

__version__ = "0.1.0"

__all__ = [
    "CacheInvalidator",
    "InvalidationScope",
    "SnapshotBuilder",
    "SnapshotResult",
    "StorefrontConfig",
    "get_config",
    "set_config",
]
