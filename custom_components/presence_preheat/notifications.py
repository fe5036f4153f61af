"""Notification rendering for Presence Pre-heat."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Tuple

from .const import (
    CONF_NOTIFICATION_TARGET,
    CONF_NOTIFY_ON_ARRIVAL,
    CONF_NOTIFY_ON_START,
    NOTIFY_MESSAGE_ARRIVAL,
    NOTIFY_MESSAGE_STARTED,
    NOTIFY_MESSAGE_TIMEOUT,
    NOTIFY_TITLE,
    NOTIFY_TITLE_TIMEOUT,
)
from .engine import Notification, NotificationKind

# Timeout notifications share the start toggle
_ENABLE_OPTION = {
    NotificationKind.PREHEAT_STARTED: CONF_NOTIFY_ON_START,
    NotificationKind.PREHEAT_TIMEOUT: CONF_NOTIFY_ON_START,
    NotificationKind.PREHEAT_STOPPED_ARRIVAL: CONF_NOTIFY_ON_ARRIVAL,
}


def notify_service(target: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split a target like ``notify.mobile_app_phone`` into (domain, service)."""
    if not isinstance(target, str) or not target.strip():
        return None
    target = target.strip()
    if "." not in target:
        return "notify", target
    domain, service = target.split(".", 1)
    if not service:
        return None
    return domain, service


def should_notify(notification: Optional[Notification], config: Mapping[str, Any]) -> bool:
    """Return True if the notification is enabled and has a target."""
    if notification is None:
        return False
    if notify_service(config.get(CONF_NOTIFICATION_TARGET)) is None:
        return False
    return bool(config.get(_ENABLE_OPTION[notification.kind], False))


def render_notification(
    notification: Notification,
    friendly_name: Callable[[str], Optional[str]],
) -> Tuple[str, str]:
    """Return (title, message) for a notification."""
    device = notification.device_id or "unknown device"
    if notification.device_id:
        device = friendly_name(notification.device_id) or notification.device_id

    if notification.kind is NotificationKind.PREHEAT_STARTED:
        return NOTIFY_TITLE, NOTIFY_MESSAGE_STARTED.format(device=device)
    if notification.kind is NotificationKind.PREHEAT_TIMEOUT:
        return NOTIFY_TITLE_TIMEOUT, NOTIFY_MESSAGE_TIMEOUT.format(device=device)
    return NOTIFY_TITLE, NOTIFY_MESSAGE_ARRIVAL
