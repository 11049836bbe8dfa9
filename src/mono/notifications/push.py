"""Expo push gateway client.

Messages are POSTed as JSON arrays of at most ``batch_size`` entries (the
gateway documents a limit of 100). Delivery is fire-and-forget: a failed
batch is logged and the next batch is still attempted; nothing is retried.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from mono.config import get_settings

logger = structlog.get_logger()

EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")

# data.type -> notification category registered by the mobile app (action buttons)
CATEGORY_BY_TYPE = {
    "budget_threshold": "budget",
    "large_transaction": "security",
    "weekly_summary": "summary",
}


def is_expo_push_token(token: object) -> bool:
    """Check the Expo token format: ``ExponentPushToken[...]`` or ``ExpoPushToken[...]``."""
    return (
        isinstance(token, str)
        and token.startswith(EXPO_TOKEN_PREFIXES)
        and token.endswith("]")
    )


def filter_valid_tokens(tokens: Iterable[str | None]) -> list[str]:
    """Drop malformed tokens and duplicates, keeping the original order."""
    seen: set[str] = set()
    valid = []
    for token in tokens:
        if is_expo_push_token(token) and token not in seen:
            seen.add(token)  # type: ignore[arg-type]
            valid.append(token)
    return valid  # type: ignore[return-value]


def chunk(items: Sequence[Any], size: int) -> list[list[Any]]:
    """Split ``items`` into consecutive lists of at most ``size`` entries."""
    if size < 1:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class PushMessage:
    """One Expo push message."""

    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: str | None = "default"
    badge: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": self.sound,
        }
        if self.badge is not None:
            payload["badge"] = self.badge
        category_id = CATEGORY_BY_TYPE.get(str(self.data.get("type", "")))
        if category_id:
            payload["categoryId"] = category_id
        return payload


@dataclass
class PushSendResult:
    """Outcome of one ``send`` call."""

    messages: int = 0
    batches_sent: int = 0
    batches_failed: int = 0
    tickets_failed: int = 0


class ExpoPushClient:
    """Send batched push messages to the Expo HTTP API."""

    def __init__(
        self,
        url: str,
        access_token: str = "",
        batch_size: int = 100,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.access_token = access_token
        self.batch_size = batch_size
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(self, messages: Sequence[PushMessage]) -> PushSendResult:
        """POST ``messages`` in batches. Never raises for gateway errors."""
        result = PushSendResult(messages=len(messages))
        if not messages:
            return result

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            for index, batch in enumerate(chunk(messages, self.batch_size)):
                try:
                    response = await client.post(
                        self.url,
                        headers=self._headers(),
                        json=[m.to_payload() for m in batch],
                    )
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    result.batches_failed += 1
                    logger.error("push_batch_failed", batch=index, size=len(batch), error=str(exc))
                    continue

                result.batches_sent += 1
                result.tickets_failed += self._count_ticket_errors(response, index)
                logger.info("push_batch_sent", batch=index, size=len(batch))

        return result

    @staticmethod
    def _count_ticket_errors(response: httpx.Response, batch_index: int) -> int:
        """Log per-message errors reported in the gateway's ticket list."""
        try:
            tickets = response.json().get("data", [])
        except (ValueError, AttributeError):
            return 0
        if not isinstance(tickets, list):
            return 0

        failed = 0
        for ticket in tickets:
            if isinstance(ticket, dict) and ticket.get("status") == "error":
                failed += 1
                logger.warning(
                    "push_ticket_error",
                    batch=batch_index,
                    reason=ticket.get("message"),
                    details=ticket.get("details"),
                )
        return failed


# Module-level singleton
_push_client: ExpoPushClient | None = None


def get_push_client() -> ExpoPushClient:
    """Get or create the push client singleton."""
    global _push_client  # noqa: PLW0603
    if _push_client is None:
        settings = get_settings()
        _push_client = ExpoPushClient(
            url=settings.expo_push_url,
            access_token=settings.expo_access_token,
            batch_size=settings.push_batch_size,
            timeout=settings.push_timeout_seconds,
        )
    return _push_client


def set_push_client(client: ExpoPushClient) -> None:
    """Replace the push client singleton (tests, custom transports)."""
    global _push_client  # noqa: PLW0603
    _push_client = client


def reset_push_client() -> None:
    """Reset the push client singleton (for testing)."""
    global _push_client  # noqa: PLW0603
    _push_client = None
