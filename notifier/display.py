"""
Notification display backends.

The display backend is the platform notification primitive: it shows
one notification and either succeeds or raises DisplayError. Backends:
- ConsoleDisplay: styled terminal output via click
- DesktopDisplay: freedesktop notifications through ``notify-send``
- WebhookDisplay: JSON POST to an HTTP endpoint via httpx

Permission gating is not done here; the delivery engine checks the
permission state before calling a backend.
"""

import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import click
import httpx

from notifier import __version__
from notifier.store import ScheduledNotification

logger = logging.getLogger("bibledaily.notifier.display")


# ============================================================================
# Constants
# ============================================================================

APP_DISPLAY_NAME = "Bible Daily"
DEFAULT_WEBHOOK_TIMEOUT = 10.0  # seconds
NOTIFY_SEND_BINARY = "notify-send"
USER_AGENT = f"BibleDaily-Notifier/{__version__}"


# ============================================================================
# Exceptions
# ============================================================================


class DisplayError(Exception):
    """Raised when the platform notification call fails."""

    pass


class NotificationPermissionError(Exception):
    """Raised when notification permission has not been granted."""

    def __init__(self, message: str, state: str = "denied"):
        super().__init__(message)
        self.state = state


# ============================================================================
# Payload
# ============================================================================


def build_payload(entry: ScheduledNotification) -> Dict[str, Any]:
    """
    Build the notification options forwarded verbatim from an entry.

    Args:
        entry: Entry being displayed

    Returns:
        Dict with title, body, tag, requireInteraction and data
    """
    return {
        "title": entry.title,
        "body": entry.body,
        "tag": entry.tag,
        "requireInteraction": entry.require_interaction,
        "data": dict(entry.data),
    }


# ============================================================================
# Base Class
# ============================================================================


class NotificationDisplay(ABC):
    """Abstract notification display backend."""

    name = "base"

    @abstractmethod
    async def show(self, entry: ScheduledNotification) -> None:
        """
        Display one notification.

        Args:
            entry: Entry to display

        Raises:
            DisplayError: If the notification could not be shown
        """

    async def close(self) -> None:
        """Release backend resources."""
        return None


# ============================================================================
# Console
# ============================================================================


class ConsoleDisplay(NotificationDisplay):
    """Prints notifications to the terminal running the notifier."""

    name = "console"

    async def show(self, entry: ScheduledNotification) -> None:
        payload = build_payload(entry)
        try:
            click.echo(click.style(f"🔔 {payload['title']}", fg="cyan", bold=True))
            click.echo(f"   {payload['body']}")
            url = payload["data"].get("url")
            if url:
                click.echo(click.style(f"   → {url}", fg="blue"))
        except OSError as e:
            raise DisplayError(f"Failed to write notification to console: {e}")


# ============================================================================
# Desktop (notify-send)
# ============================================================================


class DesktopDisplay(NotificationDisplay):
    """
    Shows desktop notifications with ``notify-send``.

    Notifications sharing a tag replace each other through the
    ``x-canonical-private-synchronous`` hint.
    """

    name = "desktop"

    def __init__(self, binary: Optional[str] = None):
        self._binary = binary or NOTIFY_SEND_BINARY

    def _command(self, entry: ScheduledNotification) -> list[str]:
        args = [
            self._binary,
            f"--app-name={APP_DISPLAY_NAME}",
            f"--urgency={'critical' if entry.require_interaction else 'normal'}",
        ]
        if entry.tag:
            args.append(f"--hint=string:x-canonical-private-synchronous:{entry.tag}")
        args.extend([entry.title, entry.body])
        return args

    async def show(self, entry: ScheduledNotification) -> None:
        if shutil.which(self._binary) is None:
            raise DisplayError(f"{self._binary} is not available on this system")

        try:
            process = await asyncio.create_subprocess_exec(
                *self._command(entry),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as e:
            raise DisplayError(f"Failed to run {self._binary}: {e}")

        if process.returncode != 0:
            raise DisplayError(
                f"{self._binary} exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )


# ============================================================================
# Webhook (httpx)
# ============================================================================


class WebhookDisplay(NotificationDisplay):
    """
    Delivers notifications by POSTing the payload to a webhook URL.

    Attributes:
        url: Endpoint receiving the notification JSON
    """

    name = "webhook"

    def __init__(self, url: str, timeout: float = DEFAULT_WEBHOOK_TIMEOUT):
        """
        Initialize the webhook display.

        Args:
            url: Endpoint receiving the notification JSON
            timeout: Request timeout in seconds

        Raises:
            ValueError: If url is empty
        """
        if not url:
            raise ValueError("url is required")

        self._url = url
        self._client = httpx.AsyncClient(
            headers={
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @property
    def url(self) -> str:
        return self._url

    async def show(self, entry: ScheduledNotification) -> None:
        payload = build_payload(entry)
        payload["id"] = entry.id
        payload["type"] = entry.type

        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.ConnectError as e:
            raise DisplayError(f"Failed to connect to webhook: {e}")
        except httpx.TimeoutException as e:
            raise DisplayError(f"Webhook request timed out: {e}")
        except httpx.HTTPError as e:
            raise DisplayError(f"Webhook request failed: {e}")

        if not 200 <= response.status_code < 300:
            raise DisplayError(
                f"Webhook rejected notification with status {response.status_code}"
            )

    async def close(self) -> None:
        await self._client.aclose()


# ============================================================================
# Factory
# ============================================================================


def create_display(backend: str, webhook_url: str = "") -> NotificationDisplay:
    """
    Create a display backend by name.

    Args:
        backend: console, desktop or webhook
        webhook_url: Target URL for the webhook backend

    Returns:
        The display backend

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == "console":
        return ConsoleDisplay()
    if backend == "desktop":
        return DesktopDisplay()
    if backend == "webhook":
        return WebhookDisplay(webhook_url)
    raise ValueError(f"Unknown display backend: {backend}")
