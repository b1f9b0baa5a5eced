"""
Minimal Telegram Bot API client. Holds the bot token; nothing else in the
package knows it.
"""

from typing import Any, Dict, List, Optional, Union

import httpx
import structlog

logger = structlog.get_logger(__name__)

TELEGRAM_API_URL = 'https://api.telegram.org'

ChatId = Union[int, str]


class TelegramAPIError(Exception):
    """Raised when Telegram cannot be reached or answers with something other than JSON."""


class TelegramClient:
    def __init__(
        self,
        token: str,
        api_url: str = TELEGRAM_API_URL,
        timeout: float = 10.0,
        upload_timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not token:
            raise ValueError("Telegram bot token is required")
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self._transport = transport

    def method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.token}/{method}"

    async def _post(self, method: str, timeout: float, **kwargs) -> Dict[str, Any]:
        """POST to a Bot API method and return the decoded reply.

        Telegram reports its own failures as `{"ok": false, "description": ...}`;
        those are returned, not raised.
        """
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=self._transport) as client:
                response = await client.post(self.method_url(method), **kwargs)
        except httpx.TimeoutException as e:
            raise TelegramAPIError(f"Telegram API timeout ({method}): {e}")
        except httpx.HTTPError as e:
            raise TelegramAPIError(f"Telegram API request failed ({method}): {e}")

        try:
            data = response.json()
        except ValueError:
            return {'ok': False, 'description': f"Invalid JSON response (HTTP {response.status_code})"}

        if not isinstance(data, dict):
            return {'ok': False, 'description': 'Invalid JSON response'}
        if not data.get('ok'):
            logger.warning("telegram_call_rejected", method=method, description=data.get('description'))
        return data

    async def call(self, method: str, payload: Dict[str, Any] = None) -> Dict[str, Any]:
        return await self._post(method, self.timeout, json=payload or {})

    async def send_message(self, chat_id: ChatId, text: str, parse_mode: str = 'HTML') -> Dict[str, Any]:
        return await self.call('sendMessage', {
            'chat_id': chat_id,
            'text': text,
            'parse_mode': parse_mode,
        })

    async def send_chat_action(self, chat_id: ChatId, action: str = 'upload_document') -> Dict[str, Any]:
        return await self.call('sendChatAction', {'chat_id': chat_id, 'action': action})

    async def send_document(
        self,
        chat_id: ChatId,
        content: bytes,
        filename: str,
        caption: str = '',
        content_type: str = 'application/pdf',
    ) -> Dict[str, Any]:
        """Upload a file in a single multipart request."""
        data = {'chat_id': str(chat_id), 'caption': caption}
        files = {'document': (filename, content, content_type)}
        return await self._post('sendDocument', self.upload_timeout, data=data, files=files)

    async def get_me(self) -> Dict[str, Any]:
        return await self.call('getMe')

    async def set_webhook(
        self,
        url: str,
        allowed_updates: List[str] = None,
        drop_pending_updates: bool = True,
    ) -> Dict[str, Any]:
        return await self.call('setWebhook', {
            'url': url,
            'allowed_updates': allowed_updates or ['message', 'edited_message'],
            'drop_pending_updates': drop_pending_updates,
        })

    async def get_webhook_info(self) -> Dict[str, Any]:
        return await self.call('getWebhookInfo')
