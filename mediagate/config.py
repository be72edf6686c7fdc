"""Configuration via Pydantic Settings, loaded from .env file."""

import logging
import os
from functools import cached_property
from pathlib import Path

from pydantic_settings import BaseSettings

_cfg_logger = logging.getLogger("config")

# Resolve .env path relative to the project root (parent of mediagate/) so it
# works regardless of the working directory the process is launched from.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


def _resolve_env_file() -> Path:
    """Return an absolute path to the .env file.

    If ``MEDIAGATE_ENV_FILE`` is set, use it (resolved relative to the project
    root when not absolute).  Otherwise default to ``<project_root>/.env``.
    """
    raw = os.environ.get("MEDIAGATE_ENV_FILE", "")
    if raw:
        p = Path(raw)
        return p if p.is_absolute() else _PROJECT_ROOT / p
    return _PROJECT_ROOT / ".env"


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_allowed_origins: str = "*"
    # Absolute base used when rewriting playlists, e.g. https://media.example.com.
    # Empty = derive from the inbound request URL.
    public_base_url: str = ""

    # Upstream HTTP
    user_agent: str = _BROWSER_UA
    upstream_connect_timeout_s: float = 5.0
    upstream_read_timeout_s: float = 20.0
    upstream_write_timeout_s: float = 10.0
    upstream_pool_timeout_s: float = 5.0
    upstream_max_connections: int = 100
    # Wall-clock budget shared by every retry, escalation and failover
    # attempt made for one inbound request.
    request_budget_s: float = 30.0

    # Header policy: hostname substrings of CDNs that reject header-less requests
    header_cdn_families: str = "uwucdn,owocdn,megacloud,megafiles,vizcloud,rapid-cloud,rabbitstream"
    header_key_markers: str = ".key"

    # Outbound tunnel (e.g. Cloudflare WARP in SOCKS mode) for IP-blocked CDNs.
    # Empty = every host is fetched directly.
    tunnel_proxy_url: str = ""
    tunnel_domains: str = (
        "silvercloud,owocdn,uwucdn,megacloud,megafiles,vizcloud,rapid-cloud,"
        "rabbitstream,streameeeeee,raffaellocdn,vidcloud,dokicloud"
    )

    # Image CDN host pool
    image_pool_domain: str = "nhentai.net"
    image_pool_suffixes: str = "7,5,3,2,1,"
    image_pool_max_candidates: int = 6
    image_pool_referer: str = "https://nhentai.net/"
    manga_image_referer: str = "https://mangapill.com/"

    # Gallery JSON API
    gallery_api_root: str = "https://nhentai.net"
    gallery_max_attempts: int = 3
    gallery_backoff_s: float = 0.6

    # Provider API (consumet-style JSON endpoints)
    provider_api_base: str = "http://127.0.0.1:3000"
    provider_timeout_s: float = 20.0

    # Cache store: redis://..., memory://, fakeredis:// (tests) or empty (disabled)
    redis_url: str = ""
    redis_socket_timeout_s: float = 2.0
    cache_ttl_s: int = 3600
    bundle_min_ttl_s: int = 1800
    cache_single_flight: bool = True

    # Response caching headers
    proxy_cache_control: str = "public, max-age=300"
    image_cache_control: str = "public, max-age=86400"
    bundle_cache_control: str = "public, max-age=300, stale-while-revalidate=600"

    model_config = {
        "env_prefix": "MEDIAGATE_",
        "env_file": str(_resolve_env_file()),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @cached_property
    def cors_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]
        return origins or ["*"]

    @cached_property
    def cdn_families(self) -> tuple[str, ...]:
        return _split_csv(self.header_cdn_families)

    @cached_property
    def key_markers(self) -> tuple[str, ...]:
        return _split_csv(self.header_key_markers)

    @cached_property
    def tunnel_domain_list(self) -> tuple[str, ...]:
        return _split_csv(self.tunnel_domains)

    @cached_property
    def pool_suffixes(self) -> tuple[str, ...]:
        # Empty entries are meaningful here: "" is the bare pool host.
        return tuple(part.strip() for part in self.image_pool_suffixes.split(","))

    @property
    def bundle_ttl_s(self) -> int:
        return max(self.cache_ttl_s, self.bundle_min_ttl_s)

    def warn_insecure_defaults(self):
        """Log warnings about degraded defaults. Called once at startup."""
        if not self.redis_url:
            _cfg_logger.warning(
                "MEDIAGATE_REDIS_URL is empty — home bundles will be rebuilt on "
                "every request. Set it to redis://host:6379/0 or memory://."
            )
        if not self.public_base_url:
            _cfg_logger.info(
                "MEDIAGATE_PUBLIC_BASE_URL is empty — rewritten playlist URLs "
                "will use the inbound request's host."
            )
