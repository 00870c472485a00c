"""
Background Notification Dispatcher
==================================

Runs every ``NOTIFICATION_INTERVAL_SECONDS`` (default 5 s).

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process drains the
  outbox per cycle.
* Events are popped one at a time (``RPOP``), so an event is owned by
  exactly one dispatcher once taken.

Per cycle
---------
1. Pop up to ``NOTIFICATION_BATCH_SIZE`` events from the outbox list.
2. Resolve recipient names / emails from ``users``.
3. POST each event to ``NOTIFICATION_WEBHOOK_URL`` (email / push gateway).
   With no URL configured the event is only logged.
4. Events whose delivery fails for any reason are pushed to the dead-letter
   list.

Nothing here can fail a booking: by the time an event is in the outbox the
booking has already committed.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
import redis.asyncio as aioredis
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideshare.config import settings
from rideshare.infrastructure.database import async_session_factory
from rideshare.infrastructure.locks import DistributedLock
from rideshare.infrastructure.notifications import (
    DEAD_LETTER_KEY,
    OUTBOX_KEY,
    NotificationEvent,
)
from rideshare.infrastructure.redis_client import get_redis
from rideshare.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


class DeliveryError(Exception):
    """The webhook did not accept the event."""


# ── Public API ────────────────────────────────────────────────────────


async def start_dispatch_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification dispatcher started (interval=%ds)",
        settings.notification_interval_seconds,
    )


async def stop_dispatch_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Notification dispatcher stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a dispatch cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_dispatch_cycle()
        except Exception:
            logger.exception("Unhandled error in notification cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.notification_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_dispatch_cycle(
    redis: aioredis.Redis | None = None,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    http_client: httpx.AsyncClient | None = None,
) -> int:
    """Execute one dispatch cycle.  Returns the number of events delivered."""
    redis = redis or await get_redis()
    lock = DistributedLock(redis, "notification_dispatch", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another dispatcher - skipping cycle")
        return 0

    delivered = 0
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=settings.notification_timeout_seconds
    )
    try:
        for _ in range(settings.notification_batch_size):
            raw = await redis.rpop(OUTBOX_KEY)
            if raw is None:
                break
            try:
                event = NotificationEvent.model_validate_json(raw)
            except ValidationError:
                logger.error("Discarding malformed notification event: %s", raw)
                await redis.lpush(DEAD_LETTER_KEY, raw)
                continue

            # Popped events are owned here: any failure must dead-letter them.
            try:
                payload = await _build_payload(event, session_factory)
                await _deliver(client, payload)
            except Exception:
                logger.exception(
                    "Delivery failed for %s event %s", event.type.value, event.id
                )
                await redis.lpush(DEAD_LETTER_KEY, raw)
                continue
            delivered += 1

        if delivered:
            logger.info("Notification cycle: %d events delivered", delivered)
    finally:
        if owns_client:
            await client.aclose()
        await lock.release()

    return delivered


async def _build_payload(
    event: NotificationEvent,
    session_factory: async_sessionmaker[AsyncSession],
) -> dict:
    async with session_factory() as session:
        users = await UserRepository(session).get_many(event.recipients)

    payload = event.model_dump(mode="json")
    payload["recipients"] = [
        {
            "id": user_id,
            "name": users[user_id].name if user_id in users else None,
            "email": users[user_id].email if user_id in users else None,
        }
        for user_id in event.recipients
    ]
    return payload


async def _deliver(client: httpx.AsyncClient, payload: dict) -> None:
    if not settings.notification_webhook_url:
        logger.info(
            "Notification %s (%s) for %s",
            payload["id"],
            payload["type"],
            ", ".join(r["email"] or r["id"] for r in payload["recipients"]),
        )
        return

    resp = await client.post(settings.notification_webhook_url, json=payload)
    if resp.status_code >= 400:
        raise DeliveryError(f"Webhook returned {resp.status_code}: {resp.text}")
