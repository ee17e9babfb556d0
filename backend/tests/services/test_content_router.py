import asyncio
from unittest.mock import MagicMock, AsyncMock

from app.modules.content_automation.services.content_router import ContentRouter

NEWS_ITEM = {"text": "Transfer news"}
BETTING_ITEM = {"text": "Tonight's tips"}


def _client(responses):
    """responses: content_type -> list of results returned in order (last one repeats)."""
    calls = []

    async def generate(content_type, language, channel_ids, max_items=1, context=None):
        calls.append(content_type)
        queue = responses.get(content_type, [{"success": True, "items": []}])
        return queue.pop(0) if len(queue) > 1 else queue[0]

    client = MagicMock()
    client.generate = AsyncMock(side_effect=generate)
    client.calls = calls
    return client


def test_betting_falls_back_to_news_after_three_attempts():
    async def test_logic():
        client = _client({
            "betting": [{"success": True, "items": []}],
            "news": [{"success": True, "items": [NEWS_ITEM], "data_source": "rss"}],
        })
        sleep = AsyncMock()
        router = ContentRouter(client=client, sleep=sleep)

        routed = await router.route("betting", "en", [1, 2])

        assert routed["available"] is True
        assert routed["requested_type"] == "betting"
        assert routed["content_type"] == "news"
        assert routed["items"] == [NEWS_ITEM]
        info = routed["processing_info"]
        assert info["betting_fallback_to_news"] is True
        assert info["fallback_used"] is True
        assert info["attempts"] == 4
        assert info["data_source"] == "rss"
        assert client.calls == ["betting", "betting", "betting", "news"]
        assert sleep.await_count == 2

    asyncio.run(test_logic())


def test_betting_succeeding_on_retry_is_not_a_fallback():
    async def test_logic():
        client = _client({
            "betting": [{"success": False, "items": [], "error": "upstream"}, {"success": True, "items": [BETTING_ITEM]}],
        })
        router = ContentRouter(client=client, sleep=AsyncMock())

        routed = await router.route("betting", "en", [1])

        assert routed["content_type"] == "betting"
        assert routed["processing_info"]["betting_fallback_to_news"] is False
        assert routed["processing_info"]["fallback_used"] is False
        assert routed["processing_info"]["attempts"] == 2

    asyncio.run(test_logic())


def test_live_falls_back_without_retries():
    async def test_logic():
        client = _client({
            "live": [{"success": True, "items": []}],
            "news": [{"success": True, "items": [NEWS_ITEM]}],
        })
        sleep = AsyncMock()
        router = ContentRouter(client=client, sleep=sleep)

        routed = await router.route("live", "am", [3])

        assert routed["content_type"] == "news"
        assert routed["processing_info"]["betting_fallback_to_news"] is False
        assert client.calls == ["live", "news"]
        sleep.assert_not_called()

    asyncio.run(test_logic())


def test_nothing_available_reports_errors():
    async def test_logic():
        client = _client({
            "polls": [{"success": False, "items": [], "error": "Client error: 400"}],
        })
        router = ContentRouter(client=client, sleep=AsyncMock())

        routed = await router.route("polls", "en", [1])

        assert routed["available"] is False
        assert routed["content_type"] == "polls"
        assert routed["items"] == []
        assert routed["processing_info"]["error"] == "polls: Client error: 400"
        assert routed["processing_info"]["fallback_used"] is False

    asyncio.run(test_logic())


def test_generator_fallback_flag_is_passed_through():
    async def test_logic():
        client = _client({
            "news": [{"success": True, "items": [NEWS_ITEM], "fallback_used": True}],
        })
        router = ContentRouter(client=client, sleep=AsyncMock())

        routed = await router.route("news", "en", [1])

        assert routed["content_type"] == "news"
        assert routed["processing_info"]["fallback_used"] is True

    asyncio.run(test_logic())
