"""Discord delivery over webhook or bot REST API, best-effort."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Literal

import httpx

from ddlrelay.config.models import DiscordConfig
from ddlrelay.notify.base import DDLChange, NotificationError

DISCORD_API_BASE = "https://discord.com/api/v10"
WEBHOOK_PATTERN = re.compile(r"^https://discord\.com/api/webhooks/\d+/[\w-]+$")
MAX_STATEMENT_LENGTH = 1000
MAX_FIELD_LENGTH = 1000
SYSTEM_USERNAME_SUFFIX = " - System"
FOOTER_TEXT = "SQL DDL Audit Worker"
DEFAULT_RATE_LIMIT_WAIT_SECONDS = 1.0
MAX_RATE_LIMIT_WAIT_SECONDS = 5.0

COLOR_CREATE = 0x00FF00
COLOR_ALTER = 0xFFFF00
COLOR_DROP = 0xFF0000
COLOR_DEFAULT = 0x0099FF
COLOR_ERROR = 0xFF0000
COLOR_STATUS = 0x0099FF

_OPERATION_COLORS = {"CREATE": COLOR_CREATE, "ALTER": COLOR_ALTER, "DROP": COLOR_DROP}
_KNOWN_OBJECTS = {"TABLE", "INDEX", "VIEW", "PROCEDURE", "FUNCTION", "TRIGGER", "SCHEMA"}

DeliveryMode = Literal["webhook", "bot", "none"]

logger = logging.getLogger(__name__)


def validate_webhook_url(url: str) -> str | None:
    """Normalize ``discordapp.com`` to ``discord.com``; None when malformed."""
    normalized = url.strip().replace("discordapp.com", "discord.com")
    if not WEBHOOK_PATTERN.match(normalized):
        return None
    return normalized


def split_operation(ddl_operation: str) -> str:
    """``CREATE_TABLE`` -> ``CREATE``; unknown operations map to ``DDL``."""
    head = ddl_operation.strip().upper().split("_", 1)[0]
    return head if head in _OPERATION_COLORS else "DDL"


def _truncate(value: str, limit: int = MAX_FIELD_LENGTH) -> str:
    return value if len(value) <= limit else value[:limit] + "..."


def rate_limit_wait(response: httpx.Response) -> float:
    """Seconds to wait before retrying a 429, from ``Retry-After`` or the JSON ``retry_after``."""
    raw: Any = response.headers.get("Retry-After")
    if raw is None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            raw = body.get("retry_after")
    try:
        wait = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_RATE_LIMIT_WAIT_SECONDS
    if math.isnan(wait):
        return DEFAULT_RATE_LIMIT_WAIT_SECONDS
    return min(max(wait, 0.0), MAX_RATE_LIMIT_WAIT_SECONDS)


def build_change_embed(change: DDLChange) -> dict[str, Any]:
    operation = split_operation(change.ddl_operation)
    object_type = change.object_type.upper()
    object_label = object_type if object_type in _KNOWN_OBJECTS else "OBJECT"
    fields: list[dict[str, Any]] = [
        {"name": "User", "value": change.user_name or change.login_name or "System", "inline": True},
        {"name": "Time", "value": change.start_time.strftime("%Y-%m-%d %H:%M:%S"), "inline": True},
        {"name": "Database", "value": change.database_name, "inline": True},
    ]
    if change.ddl_statement:
        if len(change.ddl_statement) <= MAX_STATEMENT_LENGTH:
            value = f"```sql\n{change.ddl_statement}\n```"
        else:
            value = "Statement too long to display"
        fields.append({"name": "SQL", "value": value, "inline": False})
    return {
        "color": _OPERATION_COLORS.get(operation, COLOR_DEFAULT),
        "title": f"[{operation}] {change.ddl_operation} {object_label} - {change.database_name}",
        "description": f"**{change.object_type}** `{change.qualified_name}`",
        "timestamp": change.start_time.isoformat(),
        "footer": {"text": f"Server: {change.server_name}"},
        "fields": fields,
    }


def build_error_embed(error: BaseException, context: str, now: datetime | None = None) -> dict[str, Any]:
    message = str(error) or type(error).__name__
    return {
        "color": COLOR_ERROR,
        "title": "[ERROR] DDL Relay",
        "description": f"**Context:** {context}",
        "fields": [{"name": "Error", "value": _truncate(message), "inline": False}],
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
        "footer": {"text": FOOTER_TEXT},
    }


def build_status_embed(status: str, details: str | None = None, now: datetime | None = None) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "color": COLOR_STATUS,
        "title": "[STATUS] DDL Relay",
        "description": status,
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
        "footer": {"text": FOOTER_TEXT},
    }
    if details:
        embed["fields"] = [{"name": "Details", "value": _truncate(details), "inline": False}]
    return embed


class DiscordNotifier:
    """Posts embeds to a Discord webhook, or to a channel with a bot token.

    A malformed webhook URL falls back to bot mode when a token and channel
    are configured; otherwise the notifier stays disconnected and every call
    is a no-op. Delivery failures are logged and swallowed.
    """

    def __init__(self, config: DiscordConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._webhook_url: str | None = None
        self._mode: DeliveryMode = "none"
        self._connected = False
        self._resolve_mode()

    def _resolve_mode(self) -> None:
        if not self._config.enabled:
            logger.info("discord notifications disabled")
            return
        if self._config.webhook_url.strip():
            url = validate_webhook_url(self._config.webhook_url)
            if url is None:
                logger.error(
                    "invalid discord webhook URL (expected https://discord.com/api/webhooks/ID/TOKEN): %s...",
                    self._config.webhook_url.strip()[:50],
                )
            else:
                self._webhook_url = url
                self._mode = "webhook"
                self._connected = True
                logger.info("discord webhook notifier ready")
                return
        if self._config.token.strip() and self._config.channel_id.strip():
            self._mode = "bot"
            self._connected = True
            logger.info("discord bot notifier ready for channel %s", self._config.channel_id)
            return
        logger.warning("discord not configured; notifications disabled")

    @property
    def mode(self) -> DeliveryMode:
        return self._mode

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds, transport=self._transport)
        return self._client

    async def notify_change(self, change: DDLChange) -> None:
        if not self._connected:
            return
        try:
            await self._send(build_change_embed(change), username=self._config.username)
        except NotificationError as exc:
            logger.error("discord notification failed for event %s: %s", change.id, exc)
            return
        logger.info(
            "discord notification sent for %s %s %s", change.ddl_operation, change.object_type, change.object_name
        )

    async def notify_system_error(self, error: BaseException, context: str) -> None:
        if not self._connected:
            return
        try:
            await self._send(build_error_embed(error, context), username=self._config.username + SYSTEM_USERNAME_SUFFIX)
        except NotificationError as exc:
            logger.error("discord system error notification failed: %s", exc)

    async def notify_system_status(self, status: str, details: str | None = None) -> None:
        if not self._connected:
            return
        try:
            await self._send(build_status_embed(status, details), username=self._config.username + SYSTEM_USERNAME_SUFFIX)
        except NotificationError as exc:
            logger.error("discord status notification failed: %s", exc)

    async def _send(self, embed: dict[str, Any], *, username: str) -> None:
        client = self._get_client()
        if self._mode == "webhook":
            url = self._webhook_url or ""
            headers: dict[str, str] = {}
            payload: dict[str, Any] = {
                "embeds": [embed],
                "username": username,
                "avatar_url": self._config.avatar_url,
            }
        else:
            url = f"{DISCORD_API_BASE}/channels/{self._config.channel_id.strip()}/messages"
            headers = {"Authorization": f"Bot {self._config.token.strip()}"}
            payload = {"embeds": [embed]}
        response = await self._post(client, url, payload, headers)
        if response.status_code == 429:
            wait = rate_limit_wait(response)
            logger.warning("discord rate limited; retrying in %.2fs", wait)
            await asyncio.sleep(wait)
            response = await self._post(client, url, payload, headers)
        if response.status_code >= 400:
            raise NotificationError(f"discord returned HTTP {response.status_code}: {response.text[:200]}")

    @staticmethod
    async def _post(
        client: httpx.AsyncClient, url: str, payload: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        try:
            return await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationError(f"discord request failed: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._connected:
            logger.info("discord %s notifier closed", self._mode)
        self._connected = False

    def status(self) -> dict[str, Any]:
        return {"is_connected": self._connected, "type": self._mode}
