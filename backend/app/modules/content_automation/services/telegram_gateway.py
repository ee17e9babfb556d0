"""
Telegram Gateway
Messaging gateway on top of the Telegram Bot API.

One send() call delivers one rendered item to one chat. The item decides the
method: sendPoll for {"poll": {...}}, sendPhoto for items with an image,
sendMessage otherwise.

Retry Strategy:
- Max 3 attempts with exponential backoff
- Retries on: Timeout, Connection errors, 5xx, 429 (flood control)
- Does NOT retry on: other 4xx (chat not found, bot kicked, bad markup)
"""
import logging
from datetime import datetime
from typing import Dict, Any, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.shared.core.config import settings
from app.shared.core.constants import (
    TIMEOUT_TELEGRAM_SEND,
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
    TELEGRAM_MAX_MESSAGE_LENGTH,
)
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("telegram_gateway")

TELEGRAM_MAX_CAPTION_LENGTH = 1024
TRUNCATION_SUFFIX = "…"

# Sends inside this local-hour band go out silently
SILENT_HOURS_START = 23
SILENT_HOURS_END = 6


class TelegramRetryableError(Exception):
    """Flood control or server-side failure."""
    pass


class TelegramNonRetryableError(Exception):
    """Telegram rejected the request (bad chat, bad markup, bot removed)."""
    pass


def telegram_retry():
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=RETRY_MIN_WAIT_SECONDS, max=RETRY_MAX_WAIT_SECONDS),
        retry=retry_if_exception_type((
            TelegramRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def is_silent_hour(hour: int) -> bool:
    return hour >= SILENT_HOURS_START or hour < SILENT_HOURS_END


def build_request(chat_id: str, content: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Map a rendered item onto (method, payload).

    Item keys used: text, image_url, poll {question, options, is_anonymous},
    buttons [{text, url}], parse_mode, disable_preview.
    """
    silent = is_silent_hour(now.hour) if now else False
    payload: Dict[str, Any] = {"chat_id": chat_id, "disable_notification": silent}

    poll = content.get("poll")
    if poll:
        payload.update({
            "question": truncate(poll["question"], 300),
            "options": [str(option)[:100] for option in poll.get("options", [])],
            "is_anonymous": poll.get("is_anonymous", True),
        })
        return {"method": "sendPoll", "payload": payload}

    buttons = content.get("buttons") or []
    if buttons:
        payload["reply_markup"] = {
            "inline_keyboard": [[{"text": b["text"], "url": b["url"]}] for b in buttons if b.get("url")]
        }

    parse_mode = content.get("parse_mode", "HTML")
    text = content.get("text") or ""

    if content.get("image_url"):
        payload.update({
            "photo": content["image_url"],
            "caption": truncate(text, TELEGRAM_MAX_CAPTION_LENGTH),
            "parse_mode": parse_mode,
        })
        return {"method": "sendPhoto", "payload": payload}

    payload.update({
        "text": truncate(text, TELEGRAM_MAX_MESSAGE_LENGTH),
        "parse_mode": parse_mode,
        "disable_web_page_preview": content.get("disable_preview", False),
    })
    return {"method": "sendMessage", "payload": payload}


class TelegramGateway:
    """Bot API sender. A failed send returns a result dict; it never raises."""

    def __init__(self, bot_token: Optional[str] = None, api_base: Optional[str] = None):
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip('/')

        if not self.bot_token:
            logger.warning("⚠️ TELEGRAM_BOT_TOKEN not configured in .env")

    def is_configured(self) -> bool:
        return bool(self.bot_token)

    async def send(self, chat_id: str, content: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Deliver one item to one chat.

        Returns:
            {"success": True, "message_id": int} or {"success": False, "error": str}
        """
        if not self.is_configured():
            return {"success": False, "error": "Telegram bot token not configured"}
        if not (content.get("text") or content.get("poll") or content.get("image_url")):
            return {"success": False, "error": "Empty content item"}

        request = build_request(chat_id, content, now)
        try:
            return await self._call_with_retry(request["method"], request["payload"])
        except TelegramNonRetryableError as e:
            return {"success": False, "error": str(e), "retryable": False}
        except (TelegramRetryableError, httpx.TimeoutException, httpx.ConnectError) as e:
            logger.error(f"All retries exhausted sending to {chat_id}: {e}")
            return {
                "success": False,
                "error": f"Failed after {MAX_RETRY_ATTEMPTS} attempts: {e}",
                "retries_exhausted": True
            }
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending to {chat_id}: {e}")
            return {"success": False, "error": str(e)}

    @telegram_retry()
    async def _call_with_retry(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = http_client_manager.get_client()
        response = await client.post(
            f"{self.api_base}/bot{self.bot_token}/{method}",
            json=payload,
            timeout=TIMEOUT_TELEGRAM_SEND
        )

        if response.status_code == 200:
            data = response.json()
            if data.get("ok"):
                message_id = (data.get("result") or {}).get("message_id")
                logger.info(f"{method} delivered to {payload['chat_id']} (message {message_id})")
                return {"success": True, "message_id": message_id}
            raise TelegramNonRetryableError(data.get("description", "Telegram returned ok=false"))

        if response.status_code == 429:
            retry_after = response.json().get("parameters", {}).get("retry_after")
            logger.warning(f"Flood control on {payload['chat_id']}, retry_after={retry_after}")
            raise TelegramRetryableError(f"Too many requests (retry_after={retry_after})")

        if 400 <= response.status_code < 500:
            description = response.json().get("description", response.text)
            logger.error(f"Telegram rejected {method} to {payload['chat_id']}: {response.status_code} {description}")
            raise TelegramNonRetryableError(f"Client error {response.status_code}: {description}")

        logger.warning(f"Telegram server error {response.status_code}, will retry...")
        raise TelegramRetryableError(f"Server error: {response.status_code}")


# Singleton instance
telegram_gateway = TelegramGateway()
