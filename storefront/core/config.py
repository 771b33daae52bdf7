"""
Configuration management for the storefront service.

Non-secret defaults come from a YAML file; credentials and per-deployment
values come from the environment (optionally via a .env file).
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from storefront.core.errors import ConfigurationError


def _project_root() -> Path:
    """Return project root (parent of storefront package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"

DEFAULT_SANITIZE_RULES: List[Tuple[str, str]] = [
    ("Toto Toys & Fun", "Sokohub Kenya"),
    ("Toto Toys and Fun", "Sokohub Kenya"),
    ("Toto Toys and Games", "Sokohub Kenya"),
    ("Toto Toys", "Sokohub"),
    ("toto.co.ke", "sokohubkenya.com"),
]


@dataclass
class StorefrontConfig:
    """Configuration for the storefront service."""

    # Database (Supabase PostgREST)
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Public site
    site_url: Optional[str] = None
    site_name: str = "Sokohub Kenya"
    currency: str = "KES"

    # CDN purge (optional; skipped when either is missing)
    cloudflare_zone_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None
    cdn_api_base: str = "https://api.cloudflare.com/client/v4"

    # Shared secret for /revalidate and /static-data/rebuild
    revalidate_secret: Optional[str] = None

    # Snapshot output
    public_dir: str = "public"
    strict_writes: bool = False
    # Snapshot files older than this are bypassed in favour of a live query
    snapshot_max_age: float = 86400

    # Outbound timeouts (seconds)
    database_timeout: float = 30.0
    cdn_timeout: float = 10.0
    revalidate_timeout: float = 10.0

    # In-process caches
    page_cache_ttl: float = 3600
    page_cache_max_entries: int = 512
    query_cache_ttl: float = 300

    sanitize_rules: List[Tuple[str, str]] = field(
        default_factory=lambda: list(DEFAULT_SANITIZE_RULES)
    )

    @property
    def cdn_configured(self) -> bool:
        return bool(self.cloudflare_zone_id and self.cloudflare_api_token)

    def require_database(self) -> None:
        """Raise ConfigurationError unless Supabase credentials are present."""
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "StorefrontConfig":
        """Load configuration from YAML file."""
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        site_config = data.get('site', {})
        snapshot_config = data.get('snapshot', {})
        http_config = data.get('http', {})
        cache_config = data.get('cache', {})
        sanitizer_config = data.get('sanitizer', {})

        rules = sanitizer_config.get('rules')
        return cls(
            site_url=site_config.get('url'),
            site_name=site_config.get('name', 'Sokohub Kenya'),
            currency=site_config.get('currency', 'KES'),
            public_dir=snapshot_config.get('public_dir', 'public'),
            strict_writes=snapshot_config.get('strict_writes', False),
            snapshot_max_age=snapshot_config.get('max_age', 86400),
            database_timeout=http_config.get('database_timeout', 30.0),
            cdn_timeout=http_config.get('cdn_timeout', 10.0),
            revalidate_timeout=http_config.get('revalidate_timeout', 10.0),
            cdn_api_base=http_config.get('cdn_api_base', 'https://api.cloudflare.com/client/v4'),
            page_cache_ttl=cache_config.get('page_ttl', 3600),
            page_cache_max_entries=cache_config.get('page_max_entries', 512),
            query_cache_ttl=cache_config.get('query_ttl', 300),
            sanitize_rules=[tuple(r) for r in rules] if rules else list(DEFAULT_SANITIZE_RULES),
        )

    @classmethod
    def from_env(cls, config_path: Optional[Path] = None) -> "StorefrontConfig":
        """Load YAML defaults, then apply environment overrides."""
        env_path = os.environ.get("STOREFRONT_CONFIG")
        if config_path is None and env_path:
            config_path = Path(env_path)
        config = cls.from_yaml(config_path)

        config.supabase_url = os.environ.get("SUPABASE_URL") or config.supabase_url
        config.supabase_key = (
            os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
            or os.environ.get("SUPABASE_KEY")
            or config.supabase_key
        )
        config.site_url = os.environ.get("SITE_URL") or config.site_url
        config.cloudflare_zone_id = os.environ.get("CLOUDFLARE_ZONE_ID") or config.cloudflare_zone_id
        config.cloudflare_api_token = os.environ.get("CLOUDFLARE_API_TOKEN") or config.cloudflare_api_token
        config.revalidate_secret = os.environ.get("REVALIDATE_SECRET") or config.revalidate_secret
        config.public_dir = os.environ.get("STOREFRONT_PUBLIC_DIR") or config.public_dir
        return config


# Global config instance
_config: Optional[StorefrontConfig] = None


def get_config() -> StorefrontConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = StorefrontConfig.from_env()
    return _config


def set_config(config: StorefrontConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
