"""
Match Importance Scorer
Ranks raw fixtures by newsworthiness and derives content opportunities.

Scoring is a sum of bounded factors:
- competition tier         2-10
- team popularity          6-20 (+ favourite boost)
- rivalry bonus            0-3
- stage                    1
- timing relevance         0-10, depends on the requested content type

Everything in this module is pure: no I/O, no clock reads (callers pass `now`),
so it can be tested against fixed fixtures.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Sequence

from app.modules.content_automation.constants import (
    ContentType,
    COMPETITION_SCORES,
    UNKNOWN_COMPETITION_SCORE,
    TEAM_SCORES,
    UNKNOWN_TEAM_SCORE,
    FAVORITE_TEAM_BOOST,
    RIVALRIES,
    STAGE_SCORE,
    OPPORTUNITY_THRESHOLDS,
    MIN_IMPORTANCE_SCORE,
    DEFAULT_MAX_FUTURE_DAYS,
    MAX_HOURS_BACK,
    DEFAULT_MAX_HOURS_BACK,
    MIN_TIMING_SCORE,
    DEFAULT_MIN_TIMING_SCORE,
)

logger = logging.getLogger("match_scorer")

LIVE_STATUSES = {"LIVE", "IN_PLAY", "1H", "2H", "HT"}

SUITABILITY_MULTIPLIERS: Dict[str, float] = {
    ContentType.LIVE.value: 1.2,
    ContentType.BETTING.value: 1.1,
    ContentType.ANALYSIS.value: 1.0,
    ContentType.POLLS.value: 1.0,
    ContentType.NEWS.value: 0.9,
    ContentType.DAILY_SUMMARY.value: 0.8,
    ContentType.WEEKLY_SUMMARY.value: 0.8,
}


@dataclass
class ScoringContext:
    """Parameters of one scoring pass."""
    now: datetime
    content_type: Optional[str] = None
    min_score: int = MIN_IMPORTANCE_SCORE
    max_future_days: float = DEFAULT_MAX_FUTURE_DAYS
    language: str = "en"
    favorite_teams: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self):
        # Lookup tables are keyed by plain strings
        self.content_type = getattr(self.content_type, "value", self.content_type)


def _as_utc(value) -> datetime:
    """Accept datetimes or ISO strings; naive values are treated as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lookup_score(name: str, table: Dict[str, int], unknown: int) -> int:
    """Exact match first, then case-insensitive containment either way (longest key wins)."""
    if not name:
        return unknown
    if name in table:
        return table[name]

    lowered = name.lower()
    for key in sorted(table, key=len, reverse=True):
        key_lower = key.lower()
        if key_lower in lowered or lowered in key_lower:
            return table[key]
    return unknown


def competition_score(competition: str) -> int:
    return _lookup_score(competition, COMPETITION_SCORES, UNKNOWN_COMPETITION_SCORE)


def team_score(team: str) -> int:
    return _lookup_score(team, TEAM_SCORES, UNKNOWN_TEAM_SCORE)


def _canonical_team(team: str) -> Optional[str]:
    if team in TEAM_SCORES:
        return team
    lowered = team.lower()
    for key in sorted(TEAM_SCORES, key=len, reverse=True):
        if key.lower() in lowered or lowered in key.lower():
            return key
    return None


def rivalry_bonus(home_team: str, away_team: str) -> Dict[str, Any]:
    """Return {"name", "bonus"} for a known derby, bonus 0 otherwise."""
    pair = {_canonical_team(home_team or ""), _canonical_team(away_team or "")}
    for rivalry in RIVALRIES:
        if pair == set(rivalry["teams"]):
            return {"name": rivalry["name"], "bonus": rivalry["bonus"]}
    return {"name": None, "bonus": 0}


def timing_score(days_diff: float, content_type: Optional[str] = None, status: Optional[str] = None) -> int:
    """
    Timing relevance for a kickoff `days_diff` days from now (negative = past).

    Each content type has its own ladder: betting only cares about upcoming
    matches, summaries only about finished ones, news likes both.
    """
    days_ago = abs(days_diff)
    past = days_diff < 0

    if content_type == ContentType.LIVE:
        if status and status.upper() in LIVE_STATUSES:
            return 10
        return 8 if days_ago < 0.5 else 1

    if content_type == ContentType.BETTING:
        if past:
            return 0
        if days_diff <= 1:
            return 8
        if days_diff <= 7:
            return 6
        if days_diff <= 14:
            return 4
        return 2

    if content_type == ContentType.NEWS:
        if past:
            if days_ago <= 0.5:
                return 4
            if days_ago <= 1:
                return 3
            if days_ago <= 3:
                return 2
            return 0
        if days_diff <= 1:
            return 8
        if days_diff <= 7:
            return 6
        if days_diff <= 30:
            return 4
        return 2

    if content_type == ContentType.ANALYSIS:
        if past:
            if days_ago <= 2:
                return 6
            if days_ago <= 5:
                return 4
            return 0
        if days_diff <= 7:
            return 5
        if days_diff <= 14:
            return 3
        return 1

    if content_type == ContentType.DAILY_SUMMARY:
        if not past:
            return 0
        if days_ago <= 1:
            return 10
        return 8 if days_ago <= 2 else 0

    if content_type == ContentType.WEEKLY_SUMMARY:
        if not past:
            return 0
        if days_ago <= 1:
            return 8
        return 10 if days_ago <= 7 else 0

    if content_type == ContentType.POLLS:
        if past:
            if days_ago <= 1:
                return 6
            if days_ago <= 2:
                return 5
            if days_ago <= 3:
                return 4
            if days_ago <= 7:
                return 2
            return 0
        if days_diff <= 1:
            return 8
        if days_diff <= 7:
            return 6
        if days_diff <= 14:
            return 4
        return 2

    # Default ladder
    if past:
        if days_ago <= 1:
            return 4
        if days_ago <= 3:
            return 2
        return 0
    if days_diff <= 1:
        return 6
    if days_diff <= 3:
        return 5
    if days_diff <= 7:
        return 4
    if days_diff <= 14:
        return 3
    if days_diff <= 30:
        return 2
    return 1


def determine_content_opportunities(score: int) -> Dict[str, bool]:
    """Opportunity flags for a total score (thresholds are inclusive)."""
    return {
        opportunity: score >= threshold
        for opportunity, threshold in OPPORTUNITY_THRESHOLDS.items()
    }


class MatchImportanceScorer:
    """
    Scores raw fixtures.

    Raw match dict keys: external_match_id, home_team, away_team,
    home_team_id, away_team_id, competition, kickoff_time, status, venue.
    """

    def score_match(self, match: Dict[str, Any], context: ScoringContext) -> Dict[str, Any]:
        """Annotate a single match with its score, breakdown and opportunities."""
        kickoff = _as_utc(match["kickoff_time"])
        days_diff = (kickoff - _as_utc(context.now)).total_seconds() / 86400

        home = match.get("home_team") or ""
        away = match.get("away_team") or ""

        comp = competition_score(match.get("competition") or "")
        teams = team_score(home) + team_score(away)
        if context.favorite_teams and any(
            fav.lower() in home.lower() or fav.lower() in away.lower()
            for fav in context.favorite_teams
        ):
            teams += FAVORITE_TEAM_BOOST
        rivalry = rivalry_bonus(home, away)
        timing = timing_score(days_diff, context.content_type, match.get("status"))
        total = comp + teams + rivalry["bonus"] + STAGE_SCORE + timing

        breakdown = {
            "competition": comp,
            "teams": teams,
            "rivalry": rivalry["bonus"],
            "stage": STAGE_SCORE,
            "timing": timing,
            "total": total,
        }

        return {
            **match,
            "kickoff_time": kickoff,
            "importance_score": total,
            "score_breakdown": breakdown,
            "reasons": self._build_reasons(match, breakdown, rivalry["name"]),
            "content_suitability": self.content_suitability(total, context.content_type),
            "content_opportunities": determine_content_opportunities(total),
            "days_until_kickoff": round(days_diff, 3),
        }

    def _is_in_window(self, scored: Dict[str, Any], context: ScoringContext) -> bool:
        days_diff = scored["days_until_kickoff"]
        content_type = context.content_type

        if days_diff > context.max_future_days:
            return False

        if days_diff < 0:
            hours_back = MAX_HOURS_BACK.get(content_type, DEFAULT_MAX_HOURS_BACK)
            if abs(days_diff) * 24 > hours_back:
                return False

        min_timing = MIN_TIMING_SCORE.get(content_type, DEFAULT_MIN_TIMING_SCORE)
        return scored["score_breakdown"]["timing"] >= min_timing

    def find_important_matches(
        self,
        matches: List[Dict[str, Any]],
        context: ScoringContext
    ) -> List[Dict[str, Any]]:
        """
        Score, filter and order matches.

        Returns only matches inside the time window with a total at or above
        context.min_score, ordered by score descending then kickoff ascending.
        """
        eligible = []
        for match in matches:
            try:
                scored = self.score_match(match, context)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed match {match.get('external_match_id')}: {e}")
                continue

            if not self._is_in_window(scored, context):
                continue
            if scored["importance_score"] < context.min_score:
                continue
            eligible.append(scored)

        eligible.sort(key=lambda m: (-m["importance_score"], m["kickoff_time"]))
        return eligible

    def content_suitability(self, total: int, content_type: Optional[str]) -> int:
        base = min(total * 3, 100)
        multiplier = SUITABILITY_MULTIPLIERS.get(content_type, 1.0)
        return int(min(round(base * multiplier), 100))

    def _build_reasons(self, match: Dict[str, Any], breakdown: Dict[str, int], rivalry_name: Optional[str]) -> List[str]:
        reasons = []
        if breakdown["competition"] >= 8:
            reasons.append(f"Top competition: {match.get('competition')}")
        if breakdown["teams"] >= 15:
            reasons.append("Popular teams")
        if breakdown["timing"] >= 4:
            reasons.append("Good timing")
        if breakdown["rivalry"] >= 2 and rivalry_name:
            reasons.append(f"Rivalry: {rivalry_name}")
        if breakdown["total"] >= 25:
            reasons.append("High overall relevance")
        return reasons

    def scoring_stats(self, scored_matches: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Distribution summary used in discovery run summaries."""
        scores = [m["importance_score"] for m in scored_matches]
        if not scores:
            return {"total": 0, "average": 0, "max": 0, "min": 0, "distribution": {}}

        distribution = {"premium_25_plus": 0, "high_20_24": 0, "medium_15_19": 0, "low_below_15": 0}
        for score in scores:
            if score >= 25:
                distribution["premium_25_plus"] += 1
            elif score >= 20:
                distribution["high_20_24"] += 1
            elif score >= 15:
                distribution["medium_15_19"] += 1
            else:
                distribution["low_below_15"] += 1

        return {
            "total": len(scores),
            "average": round(sum(scores) / len(scores), 1),
            "max": max(scores),
            "min": min(scores),
            "distribution": distribution,
        }


# Singleton instance
match_scorer = MatchImportanceScorer()
