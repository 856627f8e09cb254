# swapdesk/transport/telegram.py

import logging
from typing import List, Optional, Tuple

from swapdesk.errors import TransportError, UpstreamError
from swapdesk.gateways.http import HttpGateway
from swapdesk.transport.packets import Keyboard, to_reply_markup

log = logging.getLogger(__name__)


class TelegramTransport(HttpGateway):
    """Outbound side of the chat: Bot API calls keyed by chat id."""

    service = "telegram"

    def __init__(self, bot_token: str, api_url: str = "https://api.telegram.org",
                 timeout: float = 30, session=None):
        super().__init__(f"{api_url.rstrip('/')}/bot{bot_token}",
                         timeout=timeout, session=session)

    def _error_message(self, data, status):
        if isinstance(data, dict) and data.get("description"):
            return data["description"]
        return super()._error_message(data, status)

    async def _call(self, method: str, payload: dict):
        try:
            data = await self._request("POST", f"/{method}", payload=payload)
        except UpstreamError as e:
            raise TransportError(f"{method} failed: {e}") from e
        if not data or not data.get("ok"):
            raise TransportError(f"{method} failed: {data}")
        return data.get("result")

    async def send_text(self, session_id: str, text: str):
        await self._call("sendMessage", {"chat_id": session_id, "text": text})

    async def send_text_with_buttons(self, session_id: str, text: str,
                                     keyboard: Optional[Keyboard]) -> int:
        result = await self._call("sendMessage", {
            "chat_id": session_id,
            "text": text,
            "reply_markup": to_reply_markup(keyboard),
        })
        return result["message_id"]

    async def edit_message(self, session_id: str, message_ref: int, text: str,
                           keyboard: Optional[Keyboard] = None):
        try:
            await self._call("editMessageText", {
                "chat_id": session_id,
                "message_id": message_ref,
                "text": text,
                "reply_markup": to_reply_markup(keyboard),
            })
        except TransportError as e:
            # identical text and markup is not worth surfacing
            if "message is not modified" in str(e):
                log.debug(f"Edit of {message_ref} was a no-op")
                return
            raise

    async def acknowledge_callback(self, callback_id: str):
        await self._call("answerCallbackQuery", {"callback_query_id": callback_id})

    async def set_webhook(self, url: str, secret: str):
        await self._call("setWebhook", {
            "url": url,
            "secret_token": secret,
            "allowed_updates": ["message", "callback_query"],
        })
        log.info(f"Webhook registered at {url}")

    async def set_commands(self, commands: List[Tuple[str, str]]):
        """commands: (name without the slash, description) pairs"""
        await self._call("setMyCommands", {"commands": [
            {"command": name, "description": description}
            for name, description in commands
        ]})
        log.info(f"Registered {len(commands)} bot commands")
