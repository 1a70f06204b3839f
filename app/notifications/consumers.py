"""
WebSocket consumer for live payment notifications.

Consumers:
    NotificationConsumer: One connection per signed-in client

Authentication:
    Users are authenticated via JWT token passed as query parameter.
    The JWTAuthMiddleware attaches the user to self.scope["user"].

Channel Groups:
    Each user has a channel group named "user_{user_id}". The payments
    side effects (tips, invalidations, payout results) are sent to it by
    notifications.services.PaymentNotificationService.

Message Types (to client):
    - tip_received, invalidate, payout_completed, payout_failed
"""

from __future__ import annotations

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from notifications.services import user_group_name

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    Pushes the current user's notification events.

    The socket is receive-only from the client's point of view; incoming
    frames are ignored.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.group_name: str | None = None

    async def connect(self):
        user = self.scope.get("user")

        if not user or isinstance(user, AnonymousUser):
            logger.warning("Rejected unauthenticated notification connection")
            await self.close(code=4001)
            return

        self.group_name = user_group_name(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"User {user.id} connected to notifications")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content):
        return

    async def notify_event(self, event):
        """
        Handle notify.event messages from the channel layer.

        Sends the event payload to the WebSocket client.
        """
        await self.send_json(event["event"])
