# swapdesk/transport/webhook.py

import logging
from typing import Optional

from aiohttp import web

from swapdesk.transport.packets import InboundCallback, InboundMessage

log = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def parse_update(update: dict) -> Optional[object]:
    """Turn a Bot API update into an inbound event; None for anything
    the bot does not act on."""
    callback = update.get("callback_query")
    if callback:
        message = callback.get("message") or {}
        chat = message.get("chat") or {}
        if "id" not in chat:
            return None
        return InboundCallback(session_id=str(chat["id"]),
                               callback_id=str(callback["id"]),
                               data=callback.get("data") or "",
                               message_ref=message.get("message_id"))

    message = update.get("message")
    if message and message.get("text"):
        chat = message.get("chat") or {}
        if "id" not in chat:
            return None
        return InboundMessage(session_id=str(chat["id"]),
                              text=message["text"],
                              message_id=message.get("message_id"))
    return None


def create_app(router, bot_token: str, secret: str) -> web.Application:
    async def handle_update(request):
        if request.headers.get(SECRET_HEADER) != secret:
            log.warning(f"Rejected webhook call from {request.remote}: bad secret")
            return web.json_response({"ok": False, "error": "Unauthorized"}, status=401)

        try:
            update = await request.json()
        except ValueError:
            return web.json_response({"ok": False, "error": "Invalid JSON"}, status=400)

        event = parse_update(update)
        if event is None:
            log.debug(f"Ignoring update {update.get('update_id')}")
            return web.json_response({"ok": True})

        try:
            await router.route(event)
        except Exception as e:
            # answering non-200 makes Telegram redeliver the same update
            log.exception(f"Unhandled error for update {update.get('update_id')}: {e}")
        return web.json_response({"ok": True})

    async def health(request):
        return web.json_response({"status": "healthy"})

    app = web.Application()
    app.router.add_post(f"/bot{bot_token}", handle_update)
    app.router.add_get("/health", health)
    return app


async def start_webhook_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info(f"Webhook server listening on http://{host}:{port}")
    return runner
