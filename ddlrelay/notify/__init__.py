"""Notification sinks for relayed DDL events and system messages."""

from ddlrelay.config.models import DiscordConfig
from ddlrelay.notify.base import DDLChange, NotificationError, Notifier, NullNotifier
from ddlrelay.notify.discord import DiscordNotifier, build_change_embed, validate_webhook_url


def build_notifier(config: DiscordConfig) -> Notifier:
    if not config.enabled:
        return NullNotifier()
    return DiscordNotifier(config)


__all__ = [
    "DDLChange",
    "DiscordNotifier",
    "NotificationError",
    "Notifier",
    "NullNotifier",
    "build_change_embed",
    "build_notifier",
    "validate_webhook_url",
]
