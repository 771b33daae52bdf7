"""Exception types raised across the storefront service."""


class StorefrontError(Exception):
    """Base class for storefront errors."""


class ConfigurationError(StorefrontError):
    """Required credentials or settings are missing."""


class CatalogFetchError(StorefrontError):
    """A read against the catalog database failed."""


class SnapshotWriteError(StorefrontError):
    """A snapshot file could not be written (strict mode only)."""


class RevalidationError(StorefrontError):
    """The page-cache revalidation step failed."""


class CDNPurgeError(StorefrontError):
    """The CDN purge request failed or timed out."""
