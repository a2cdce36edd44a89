"""Google Calendar push-notification channels.

Each user has at most one live channel on their calendar. Google posts to
WEBHOOK_URL whenever the calendar changes; the notification carries no event
data, only headers identifying the channel:

- X-Goog-Channel-ID: our channel id
- X-Goog-Resource-ID: Google's id for the watched resource
- X-Goog-Resource-State: "sync" right after creation, then "exists"
- X-Goog-Channel-Token: the verification token we set on the channel

Clients pick the change up on their next call to the sync endpoint.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_mirror.calendar.errors import (
    CalendarError,
    CalendarNotConfiguredError,
    EventPermissionError,
)
from calendar_mirror.calendar.google_calendar import GoogleCalendarClient
from calendar_mirror.calendar.service import CalendarService
from calendar_mirror.config import get_settings
from calendar_mirror.database.models import User, Webhook

logger = logging.getLogger(__name__)


class InvalidNotificationError(CalendarError):
    status_code = 400


class UnknownChannelError(CalendarError):
    status_code = 404


def channel_token(channel_id: str) -> str:
    """Verification token for a channel, derived from the app secret."""
    settings = get_settings()
    digest = hmac.new(
        settings.secret_key.encode("utf-8"),
        f"{channel_id}:webhook".encode("utf-8"),
        hashlib.sha256,
    )
    return digest.hexdigest()[:32]


@dataclass
class Notification:
    """A verified push notification."""

    webhook: Webhook
    resource_state: str

    @property
    def calendar_changed(self) -> bool:
        return self.resource_state in ("exists", "not_exists")


class WebhookManager:
    """Creates, stops and verifies push-notification channels."""

    def __init__(self, db: AsyncSession, calendar: CalendarService | None = None):
        self.db = db
        self.calendar = calendar or CalendarService(db)
        self.settings = get_settings()

    async def list_for_user(self, user: User) -> list[Webhook]:
        result = await self.db.execute(select(Webhook).where(Webhook.user_id == user.id))
        return list(result.scalars().all())

    async def setup(self, user: User) -> Webhook:
        """Replace the user's channels with a fresh one.

        Raises:
            CalendarNotConfiguredError: If WEBHOOK_URL is not set
            CalendarError: If Google refuses the watch request
        """
        if not self.settings.webhooks_configured:
            raise CalendarNotConfiguredError(
                "Push notifications are not configured. Set WEBHOOK_URL."
            )

        logger.info(f"Setting up webhook for {user.email}")
        client = await self.calendar.get_calendar_client(user)

        for webhook in await self.list_for_user(user):
            try:
                await self._stop_channel(client, webhook)
                logger.info(f"Cleaned up old webhook {webhook.channel_id}")
            except CalendarError as e:
                logger.warning(f"Failed to stop old webhook {webhook.channel_id}: {e}")
            await self.db.delete(webhook)
        await self.db.commit()

        channel_id = f"{user.id}-{int(time.time() * 1000)}"
        expiration = datetime.now(timezone.utc) + timedelta(
            days=self.settings.webhook_ttl_days
        )

        channel = await run_in_threadpool(
            client.watch_events,
            channel_id,
            self.settings.webhook_url,
            expiration,
            channel_token(channel_id),
        )

        webhook = Webhook(
            user_id=user.id,
            channel_id=channel.channel_id,
            resource_id=channel.resource_id,
            expiration=channel.expiration,
        )
        self.db.add(webhook)
        await self.db.commit()

        logger.info(f"New webhook {webhook.channel_id} expires {webhook.expiration}")
        return webhook

    async def _stop_channel(self, client: GoogleCalendarClient, webhook: Webhook) -> None:
        await run_in_threadpool(client.stop_channel, webhook.channel_id, webhook.resource_id)

    async def stop(self, user: User, webhook: Webhook) -> None:
        """Stop a channel at Google, then forget it."""
        client = await self.calendar.get_calendar_client(user)
        await self._stop_channel(client, webhook)
        await self.db.delete(webhook)
        await self.db.commit()

    async def stop_all(self, user: User) -> int:
        """Stop every channel of a user and delete the records.

        Google failures are logged; the records are deleted regardless.

        Returns:
            Number of channels removed
        """
        webhooks = await self.list_for_user(user)
        if not webhooks:
            return 0

        try:
            client = await self.calendar.get_calendar_client(user)
        except CalendarError as e:
            logger.warning(f"Cannot reach Google to stop webhooks for {user.email}: {e}")
            client = None

        if client is not None:
            for webhook in webhooks:
                try:
                    await self._stop_channel(client, webhook)
                    logger.info(f"Stopped webhook {webhook.channel_id}")
                except CalendarError as e:
                    logger.warning(f"Failed to stop webhook {webhook.channel_id}: {e}")

        await self.db.execute(delete(Webhook).where(Webhook.user_id == user.id))
        await self.db.commit()

        logger.info(f"Cleaned up {len(webhooks)} webhooks for {user.email}")
        return len(webhooks)

    async def handle_notification(
        self,
        channel_id: str | None,
        resource_state: str | None,
        resource_id: str | None = None,
        token: str | None = None,
    ) -> Notification:
        """Verify a push notification against the stored channel.

        Raises:
            InvalidNotificationError: Required headers missing
            UnknownChannelError: Channel id not on record
            EventPermissionError: Resource id or channel token mismatch
        """
        if not channel_id or not resource_state:
            raise InvalidNotificationError("Invalid webhook")

        result = await self.db.execute(
            select(Webhook).where(Webhook.channel_id == channel_id)
        )
        webhook = result.scalar_one_or_none()

        if webhook is None:
            logger.warning(f"Notification for unknown channel {channel_id}")
            raise UnknownChannelError("Unknown channel")

        if resource_id and resource_id != webhook.resource_id:
            logger.warning(f"Resource id mismatch on channel {channel_id}")
            raise EventPermissionError("Resource mismatch")

        if not token or not hmac.compare_digest(token, channel_token(channel_id)):
            logger.warning(f"Bad channel token on channel {channel_id}")
            raise EventPermissionError("Invalid channel token")

        notification = Notification(webhook=webhook, resource_state=resource_state)

        if resource_state == "sync":
            logger.info(f"Channel {channel_id} confirmed by Google")
        elif notification.calendar_changed:
            logger.info(f"Calendar changed for user {webhook.user_id} ({resource_state})")
        else:
            logger.info(f"Unhandled resource state {resource_state} on {channel_id}")

        return notification

    async def renew_expiring(self, now: datetime | None = None) -> int:
        """Recreate channels that expire within the renewal window.

        Returns:
            Number of users whose channel was renewed
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now + timedelta(hours=self.settings.webhook_renew_before_hours)

        result = await self.db.execute(
            select(User)
            .join(Webhook, Webhook.user_id == User.id)
            .where(Webhook.expiration <= cutoff)
            .distinct()
        )
        users = list(result.scalars().all())

        renewed = 0
        for user in users:
            try:
                await self.setup(user)
                renewed += 1
            except CalendarError as e:
                logger.error(f"Failed to renew webhook for {user.email}: {e}")

        return renewed
