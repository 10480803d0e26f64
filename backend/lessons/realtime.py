import json

from channels.generic.websocket import AsyncWebsocketConsumer

from lesson_pipeline.services.progress import lesson_group_name


class LessonUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes generation progress for one lesson to the browser.

    Clients connect to ws/lessons/<lesson_id>/ and receive every
    ``lesson_update`` event published for that lesson:

      { type, lessonId, status, stage, progress, message, timestamp, data? }

    The socket is receive-only; anything the client sends is ignored
    apart from a JSON { type: 'ping' }, answered with { type: 'pong' }.
    """

    async def connect(self):
        self.lesson_id = int(self.scope['url_route']['kwargs']['lesson_id'])
        self.group_name = lesson_group_name(self.lesson_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self._send_json({'type': 'connected', 'lessonId': self.lesson_id})

    async def disconnect(self, code):
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            msg = json.loads(text_data)
        except json.JSONDecodeError:
            return
        if isinstance(msg, dict) and msg.get('type') == 'ping':
            await self._send_json({'type': 'pong'})

    async def lesson_update(self, event):
        await self._send_json(event)

    async def _send_json(self, payload: dict):
        await self.send(text_data=json.dumps(payload, ensure_ascii=False))
