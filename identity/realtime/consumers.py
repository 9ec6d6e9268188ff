import json

from channels.generic.websocket import AsyncWebsocketConsumer

from identity.services.notifier import account_group


class NotificationsConsumer(AsyncWebsocketConsumer):
    """Pushes the caller's own account notifications."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=4001)
            return
        self.group_name = account_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await self.send(json.dumps({"type": "error", "code": 4000, "message": "invalid_json"}))
            return
        if isinstance(data, dict) and data.get("type") == "ping":
            await self.send(json.dumps({"type": "pong"}))
            return
        await self.send(json.dumps({"type": "error", "code": 4002, "message": "unsupported_type"}))

    async def account_notification(self, event):
        # event: {"type": "account.notification", "event": str, "subject": str, "data": {...}}
        await self.send(json.dumps({
            "type": "notification",
            "event": event["event"],
            "subject": event.get("subject", ""),
            "data": event.get("data", {}),
        }))
