"""Configuration models for ddlrelay."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

StoreKey = tuple[str, str, str]


class PoolConfig(BaseModel):
    """Connection pool tuning for one store."""

    max: int = Field(default=10, ge=1)
    min: int = Field(default=1, ge=0)
    idle_timeout_ms: int = Field(default=30000, ge=0)

    @model_validator(mode="after")
    def _min_not_above_max(self) -> PoolConfig:
        if self.min > self.max:
            raise ValueError("pool.min must not exceed pool.max")
        return self


class StoreConfig(BaseModel):
    """Identity, credentials and tuning for one database store.

    Either ``url`` is given (any SQLAlchemy async URL) or the URL is
    assembled from server/port/database/username/password and ``driver``.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    server: str = ""
    port: int = Field(default=1433, ge=1, le=65535)
    database: str = ""
    username: str = ""
    password: str = ""
    driver: str = "mssql+aioodbc"
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    trust_server_certificate: bool = True
    connect_timeout_ms: int = Field(default=30000, ge=1)
    request_timeout_ms: int = Field(default=30000, ge=1)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    url: str | None = None

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("store name is required")
        return normalized

    @model_validator(mode="after")
    def _require_connection_fields(self) -> StoreConfig:
        if self.url:
            return self
        for field_name in ("server", "database", "username", "password"):
            if not str(getattr(self, field_name)).strip():
                raise ValueError(f"{field_name} is required for store {self.name}")
        return self

    @property
    def key(self) -> StoreKey:
        return (self.name, self.server, self.database)

    @property
    def connect_timeout_seconds(self) -> float:
        return self.connect_timeout_ms / 1000.0

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    def sqlalchemy_url(self) -> URL:
        """Build the async SQLAlchemy URL for this store."""
        if self.url:
            return make_url(self.url)
        query: dict[str, str] = {}
        if self.driver.startswith("mssql"):
            query["driver"] = self.odbc_driver
            query["TrustServerCertificate"] = "yes" if self.trust_server_certificate else "no"
        return URL.create(
            self.driver,
            username=self.username,
            password=self.password,
            host=self.server,
            port=self.port,
            database=self.database,
            query=query,
        )

    @property
    def server_label(self) -> str:
        """Server name recorded as provenance on relayed events."""
        if self.server:
            return self.server
        if self.url:
            try:
                return make_url(self.url).host or "local"
            except ArgumentError:
                return "local"
        return "local"

    def describe(self) -> str:
        """Human-readable location without credentials."""
        if self.url:
            try:
                return f"{self.name} ({make_url(self.url).render_as_string(hide_password=True)})"
            except ArgumentError:
                return f"{self.name} (invalid url)"
        return f"{self.name} ({self.server}:{self.port}/{self.database})"


class AuditConfig(BaseModel):
    """Polling and retry settings.

    ``retry_delay`` is informational: a failed event is eligible again on the
    next poll cycle, so the effective spacing between attempts is
    ``polling_interval``.
    """

    polling_interval: int = Field(default=10, ge=1, description="Seconds between poll cycles.")
    max_retries: int = Field(default=3, ge=1)
    retry_delay: int = Field(default=5, ge=0, description="Seconds; not used to gate eligibility.")
    batch_size: int = Field(default=50, ge=1)


class DiscordConfig(BaseModel):
    """Notification channel configuration."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    enabled: bool = True
    webhook_url: str = ""
    token: str = ""
    channel_id: str = ""
    username: str = "SQL DDL Auditor"
    avatar_url: str = "https://i.imgur.com/AfFp7pu.png"
    timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _require_destination(self) -> DiscordConfig:
        if not self.enabled:
            return self
        if not self.webhook_url.strip() and not self.token.strip():
            raise ValueError("discord.webhook_url or discord.token must be set")
        if not self.webhook_url.strip() and not self.channel_id.strip():
            raise ValueError("discord.channel_id is required when using a bot token")
        return self


class RelayConfig(BaseSettings):
    """Root configuration model for ddlrelay."""

    audit: AuditConfig = Field(default_factory=AuditConfig)
    discord: DiscordConfig = Field(default_factory=lambda: DiscordConfig(enabled=False))
    central: StoreConfig
    sources: list[StoreConfig] = Field(min_length=1)

    model_config = SettingsConfigDict(
        env_prefix="DDLRELAY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _unique_source_names(self) -> RelayConfig:
        seen: set[str] = set()
        for store in self.sources:
            if store.name in seen:
                raise ValueError(f"duplicate source store name: {store.name}")
            seen.add(store.name)
        return self

    def get_source(self, name: str) -> StoreConfig | None:
        for store in self.sources:
            if store.name == name:
                return store
        return None
