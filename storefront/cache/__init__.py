"""Page cache, revalidators, CDN purge and the cache invalidator."""
