"""
Fixtures Client
Fetches raw fixtures for the daily discovery cycle (API-Football v3 format)
and normalizes them into the raw match dicts the scorer understands.
"""
import logging
from datetime import date
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
    TIMEOUT_FIXTURES_API,
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
)
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("fixtures_client")

API_SOURCE = "api-football"


class FixturesRetryableError(Exception):
    pass


class FixturesNonRetryableError(Exception):
    pass


def fixtures_retry():
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=RETRY_MIN_WAIT_SECONDS, max=RETRY_MAX_WAIT_SECONDS),
        retry=retry_if_exception_type((
            FixturesRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


def normalize_fixture(fixture: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """API-Football fixture -> raw match dict. None when essential fields are missing."""
    info = fixture.get("fixture") or {}
    teams = fixture.get("teams") or {}
    home = teams.get("home") or {}
    away = teams.get("away") or {}

    if not (info.get("id") and info.get("date") and home.get("name") and away.get("name")):
        return None

    return {
        "external_match_id": str(info["id"]),
        "home_team": home["name"],
        "away_team": away["name"],
        "home_team_id": str(home["id"]) if home.get("id") is not None else None,
        "away_team_id": str(away["id"]) if away.get("id") is not None else None,
        "competition": (fixture.get("league") or {}).get("name") or "",
        "kickoff_time": info["date"],
        "status": (info.get("status") or {}).get("short") or "NS",
        "venue": (info.get("venue") or {}).get("name"),
        "raw": fixture,
    }


class FixturesClient:
    """Client for the fixtures provider."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = (base_url or settings.FIXTURES_API_URL).rstrip('/')
        self.api_key = api_key if api_key is not None else settings.FIXTURES_API_KEY

        if not self.api_key:
            logger.warning("⚠️ FIXTURES_API_KEY not configured in .env")

    async def get_fixtures(self, on_date: date) -> Dict[str, Any]:
        """
        Fixtures kicking off on `on_date`.

        Returns:
            {"success": True, "matches": [...], "api_source": str}
            or {"success": False, "matches": [], "error": str}
        """
        if not self.api_key:
            return {"success": False, "matches": [], "error": "Fixtures API key not configured"}

        try:
            fixtures = await self._get_fixtures_with_retry(on_date)
        except FixturesNonRetryableError as e:
            return {"success": False, "matches": [], "error": str(e)}
        except (FixturesRetryableError, httpx.TimeoutException, httpx.ConnectError) as e:
            logger.error(f"All retries exhausted fetching fixtures for {on_date}: {e}")
            return {"success": False, "matches": [], "error": f"Failed after {MAX_RETRY_ATTEMPTS} attempts: {e}"}
        except httpx.HTTPError as e:
            return {"success": False, "matches": [], "error": str(e)}

        matches = [m for m in (normalize_fixture(f) for f in fixtures) if m]
        skipped = len(fixtures) - len(matches)
        if skipped:
            logger.warning(f"Skipped {skipped} malformed fixture(s) for {on_date}")
        logger.info(f"Fetched {len(matches)} fixture(s) for {on_date}")
        return {"success": True, "matches": matches, "api_source": API_SOURCE}

    @fixtures_retry()
    async def _get_fixtures_with_retry(self, on_date: date) -> List[Dict[str, Any]]:
        client = http_client_manager.get_client()
        response = await client.get(
            f"{self.base_url}/fixtures",
            headers={"x-apisports-key": self.api_key, "Accept": "application/json"},
            params={"date": on_date.isoformat()},
            timeout=TIMEOUT_FIXTURES_API
        )

        if response.status_code == 200:
            return response.json().get("response", [])
        if 400 <= response.status_code < 500:
            logger.error(f"Fixtures API client error {response.status_code}: {response.text}")
            raise FixturesNonRetryableError(f"Client error: {response.status_code}")

        logger.warning(f"Fixtures API error {response.status_code}, will retry...")
        raise FixturesRetryableError(f"Server error: {response.status_code}")


# Singleton instance
fixtures_client = FixturesClient()
