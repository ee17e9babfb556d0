"""
Content Fallback Router
Asks the generator for a content type and walks the fallback chain when the
primary type yields nothing.

Betting gets several attempts before the router gives up on it; live and
memes go straight to their substitutes. The result always reports the type
that was actually produced, and any substitution is flagged in
processing_info.
"""
import asyncio
import logging
from typing import Dict, Any, List, Optional, Callable, Awaitable

from app.modules.content_automation.constants import (
    ContentType,
    BETTING_MAX_ATTEMPTS,
    BETTING_RETRY_DELAY_SECONDS,
    FALLBACK_CHAIN,
)
from app.modules.content_automation.services.content_client import content_client as default_content_client

logger = logging.getLogger("content_router")


class ContentRouter:
    """
    Routes a content request through the generator and its fallback chain.

    Usage:
        routed = await content_router.route("betting", "en", [1, 2])
        if routed["available"]:
            items = routed["items"]
    """

    def __init__(
        self,
        client=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry_delay_seconds: float = BETTING_RETRY_DELAY_SECONDS
    ):
        self.client = client or default_content_client
        self.sleep = sleep
        self.retry_delay_seconds = retry_delay_seconds

    async def _attempt(
        self,
        content_type: str,
        language: str,
        channel_ids: List[int],
        max_items: int,
        context: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """One content type, including betting's extra attempts."""
        attempts = BETTING_MAX_ATTEMPTS if content_type == ContentType.BETTING else 1
        last_error = None

        for attempt in range(1, attempts + 1):
            result = await self.client.generate(content_type, language, channel_ids, max_items, context)
            if result.get("success") and result.get("items"):
                return {**result, "attempts": attempt}

            last_error = result.get("error")
            if attempt < attempts:
                logger.info(f"{content_type} attempt {attempt}/{attempts} produced nothing, retrying")
                await self.sleep(self.retry_delay_seconds)

        return {"success": False, "items": [], "error": last_error, "attempts": attempts}

    async def route(
        self,
        content_type: str,
        language: str,
        channel_ids: List[int],
        max_items: int = 1,
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Produce content for `content_type`, falling back along the chain.

        Returns:
            {
                "available": bool,
                "requested_type": str,
                "content_type": str,        # type actually produced
                "items": [...],
                "processing_info": {
                    "data_source", "fallback_used", "betting_fallback_to_news",
                    "attempts", "error"
                }
            }
        """
        requested = getattr(content_type, "value", content_type)
        chain = [requested] + [getattr(t, "value", t) for t in FALLBACK_CHAIN.get(requested, [])]
        errors = []
        total_attempts = 0

        for candidate in chain:
            result = await self._attempt(candidate, language, channel_ids, max_items, context)
            total_attempts += result["attempts"]

            if result.get("items"):
                substituted = candidate != requested
                if substituted:
                    logger.warning(f"↪️ {requested} unavailable for {language}, using {candidate}")
                return {
                    "available": True,
                    "requested_type": requested,
                    "content_type": candidate,
                    "items": result["items"],
                    "processing_info": {
                        "data_source": result.get("data_source", "content_service"),
                        "fallback_used": substituted or bool(result.get("fallback_used")),
                        "betting_fallback_to_news": (
                            requested == ContentType.BETTING and candidate == ContentType.NEWS
                        ),
                        "attempts": total_attempts,
                        "error": None,
                    },
                }

            if result.get("error"):
                errors.append(f"{candidate}: {result['error']}")

        logger.info(f"No {requested} content available for {language} (tried {', '.join(chain)})")
        return {
            "available": False,
            "requested_type": requested,
            "content_type": requested,
            "items": [],
            "processing_info": {
                "data_source": "none",
                "fallback_used": len(chain) > 1,
                "betting_fallback_to_news": False,
                "attempts": total_attempts,
                "error": "; ".join(errors) or "no_content_available",
            },
        }


# Singleton instance
content_router = ContentRouter()
