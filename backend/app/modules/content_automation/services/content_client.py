"""
Content Service Client
Low-level wrapper for the content generation service.

The generator is a black box: given a content type, language and the target
channels it returns zero or more rendered items. An empty item list is a
normal answer (no fresh news, no bettable match), not an error.

Retry Strategy:
- Max 3 attempts with exponential backoff (2s, 4s, 8s)
- Only retries on: Timeout, Connection errors, 5xx server errors
- Does NOT retry on: 4xx client errors
"""
import logging
from typing import Dict, Any, List, Optional

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
    TIMEOUT_CONTENT_SERVICE,
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
)
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("content_client")


# ============================================
# CUSTOM EXCEPTIONS FOR RETRY LOGIC
# ============================================

class ContentServiceRetryableError(Exception):
    """Server-side failure, the request should be retried."""
    pass


class ContentServiceNonRetryableError(Exception):
    """Client error, retrying will not help."""
    pass


def content_retry():
    """Retry decorator for content service calls."""
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=RETRY_MIN_WAIT_SECONDS, max=RETRY_MAX_WAIT_SECONDS),
        retry=retry_if_exception_type((
            ContentServiceRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


class ContentServiceClient:
    """
    Client for the content generation service.

    Response items are passed through untouched apart from normalization of
    the item list key; the gateway decides how to render them.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None):
        self.base_url = (base_url or settings.CONTENT_SERVICE_URL).rstrip('/')
        self.token = token if token is not None else settings.CONTENT_SERVICE_TOKEN

        if not self.token:
            logger.warning("⚠️ CONTENT_SERVICE_TOKEN not configured in .env")

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def generate(
        self,
        content_type: str,
        language: str,
        channel_ids: List[int],
        max_items: int = 1,
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Ask the generator for content.

        Returns:
            {"success": True, "items": [...], "fallback_used": bool, "data_source": str}
            or {"success": False, "items": [], "error": str}
        """
        content_type = getattr(content_type, "value", content_type)
        try:
            return await self._generate_with_retry(content_type, language, channel_ids, max_items, context)
        except ContentServiceNonRetryableError as e:
            return {"success": False, "items": [], "error": str(e), "retryable": False}
        except (ContentServiceRetryableError, httpx.TimeoutException, httpx.ConnectError) as e:
            logger.error(f"All retries exhausted generating {content_type}/{language}: {e}")
            return {
                "success": False,
                "items": [],
                "error": f"Failed after {MAX_RETRY_ATTEMPTS} attempts: {e}",
                "retries_exhausted": True
            }
        except httpx.HTTPError as e:
            logger.error(f"HTTP error generating {content_type}/{language}: {e}")
            return {"success": False, "items": [], "error": str(e)}

    @content_retry()
    async def _generate_with_retry(
        self,
        content_type: str,
        language: str,
        channel_ids: List[int],
        max_items: int,
        context: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        payload = {
            "content_type": content_type,
            "language": language,
            "channel_ids": list(channel_ids),
            "max_items": max_items,
        }
        if context:
            payload["context"] = context

        client = http_client_manager.get_client()
        response = await client.post(
            f"{self.base_url}/generate",
            headers=self._get_headers(),
            json=payload,
            timeout=TIMEOUT_CONTENT_SERVICE
        )

        if response.status_code == 200:
            data = response.json()
            items = data.get("items")
            if items is None:
                items = data.get("content_items", [])
            logger.info(f"Generated {len(items)} {content_type} item(s) for {language}")
            return {
                "success": True,
                "items": items,
                "fallback_used": bool(data.get("fallback_used", False)),
                "data_source": data.get("data_source", "content_service"),
            }

        if response.status_code == 204:
            return {"success": True, "items": [], "fallback_used": False, "data_source": "content_service"}

        if 400 <= response.status_code < 500:
            logger.error(f"Content service client error {response.status_code}: {response.text}")
            raise ContentServiceNonRetryableError(f"Client error: {response.status_code}")

        logger.warning(f"Content service error {response.status_code}, will retry...")
        raise ContentServiceRetryableError(f"Server error: {response.status_code}")


# Singleton instance
content_client = ContentServiceClient()
