"""Application settings and configuration.

This module defines all configuration options for the Recipe Gateway.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Components take the values they need as constructor arguments, so tests
    build them directly instead of mutating this object.
    """

    # Application metadata
    app_name: str = Field(default="Recipe Gateway", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Capability tokens. No secret means signature checking is disabled.
    token_secret: str | None = Field(default=None, alias="GATEWAY_TOKEN_SECRET")
    token_ttl_seconds: int = Field(default=300, alias="TOKEN_TTL_SECONDS")
    token_clock_skew_seconds: int = Field(default=30, alias="TOKEN_CLOCK_SKEW_SECONDS")
    nonce_grace_seconds: int = Field(default=60, alias="NONCE_GRACE_SECONDS")
    nonce_ledger_prune_threshold: int = Field(
        default=5000,
        alias="NONCE_LEDGER_PRUNE_THRESHOLD",
    )

    # Per-instance admission control
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS")
    token_rate_limit_max_requests: int = Field(
        default=30,
        alias="TOKEN_RATE_LIMIT_MAX_REQUESTS",
    )
    rate_limit_gc_threshold: int = Field(default=1000, alias="RATE_LIMIT_GC_THRESHOLD")

    # CORS / origin checks
    cors_allowed_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOWED_ORIGINS",
    )
    cors_require_origin: bool = Field(default=False, alias="CORS_REQUIRE_ORIGIN")

    # Client identity. Empty means the peer address; name proxy headers
    # (e.g. ["x-nf-client-connection-ip"]) only behind a proxy that sets them.
    client_ip_headers: list[str] = Field(default_factory=list, alias="CLIENT_IP_HEADERS")
    trusted_proxy_hops: int = Field(default=1, alias="TRUSTED_PROXY_HOPS")

    # Request shape limits
    max_body_bytes: int = Field(default=6_000_000, alias="MAX_BODY_BYTES")
    text_min_chars: int = Field(default=20, alias="TEXT_MIN_CHARS")
    text_max_chars: int = Field(default=60_000, alias="TEXT_MAX_CHARS")
    image_min_chars: int = Field(default=100, alias="IMAGE_MIN_CHARS")
    image_max_chars: int = Field(default=4_000_000, alias="IMAGE_MAX_CHARS")
    page_min_chars: int = Field(default=100, alias="PAGE_MIN_CHARS")
    page_max_chars: int = Field(default=15_000, alias="PAGE_MAX_CHARS")

    # Page fetching on behalf of callers
    fetch_timeout_seconds: float = Field(default=10.0, alias="FETCH_TIMEOUT_SECONDS")
    fetch_max_redirects: int = Field(default=5, alias="FETCH_MAX_REDIRECTS")
    fetch_max_bytes: int = Field(default=2_000_000, alias="FETCH_MAX_BYTES")
    fetch_resolve_dns: bool = Field(default=True, alias="FETCH_RESOLVE_DNS")
    fetch_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; Receptbot/1.0)",
        alias="FETCH_USER_AGENT",
    )

    # Language-model API (OpenAI-compatible chat completions)
    upstream_api_key: str | None = Field(default=None, alias="GROQ_API_KEY")
    upstream_url: str = Field(
        default="https://api.groq.com/openai/v1/chat/completions",
        alias="UPSTREAM_URL",
    )
    upstream_text_model: str = Field(
        default="llama-3.3-70b-versatile",
        alias="UPSTREAM_TEXT_MODEL",
    )
    upstream_vision_model: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct",
        alias="UPSTREAM_VISION_MODEL",
    )
    upstream_temperature: float = Field(default=0.15, alias="UPSTREAM_TEMPERATURE")
    upstream_max_tokens: int = Field(default=3000, alias="UPSTREAM_MAX_TOKENS")
    upstream_timeout_seconds: float = Field(default=45.0, alias="UPSTREAM_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def signing_enabled(self) -> bool:
        """Return True when a non-empty token secret is configured."""
        return bool(self.token_secret)


settings = Settings()
