from datetime import datetime, timedelta, timezone

from app.modules.content_automation.constants import ContentType, OpportunityType
from app.modules.content_automation.services.match_scorer import (
    match_scorer,
    ScoringContext,
    competition_score,
    team_score,
    rivalry_bonus,
    timing_score,
    determine_content_opportunities,
)

NOW = datetime(2026, 10, 21, 8, 0, tzinfo=timezone.utc)


def _match(external_id, home, away, competition, kickoff, status="NS"):
    return {
        "external_match_id": external_id,
        "home_team": home,
        "away_team": away,
        "competition": competition,
        "kickoff_time": kickoff,
        "status": status,
    }


# --- FACTOR TABLES ---

def test_known_and_unknown_competitions():
    assert competition_score("Premier League") == 9
    assert competition_score("English Premier League") == 9
    assert competition_score("Sunday League") == 2


def test_team_lookup_is_case_insensitive():
    assert team_score("Real Madrid") == 10
    assert team_score("real madrid cf") == 10
    assert team_score("Hillcrest") == 3


def test_rivalry_matches_either_order():
    assert rivalry_bonus("Barcelona", "Real Madrid") == {"name": "El Clásico", "bonus": 3}
    assert rivalry_bonus("Real Madrid", "Barcelona")["bonus"] == 3
    assert rivalry_bonus("Real Madrid", "Sevilla")["bonus"] == 0


def test_betting_ignores_past_matches():
    assert timing_score(-0.1, ContentType.BETTING) == 0
    assert timing_score(0.5, ContentType.BETTING) == 8


def test_summary_only_scores_finished_matches():
    assert timing_score(0.5, ContentType.DAILY_SUMMARY) == 0
    assert timing_score(-0.5, ContentType.DAILY_SUMMARY) == 10


# --- OPPORTUNITIES ---

def test_score_18_enables_poll_but_not_analysis():
    flags = determine_content_opportunities(18)
    assert flags[OpportunityType.POLL.value] is True
    assert flags[OpportunityType.BETTING.value] is True
    assert flags[OpportunityType.ANALYSIS.value] is False
    assert flags[OpportunityType.PREMIUM_ANALYSIS.value] is False


def test_score_25_enables_premium_bundle():
    flags = determine_content_opportunities(25)
    for opportunity in OpportunityType.premium():
        assert flags[opportunity.value] is True


# --- FIND IMPORTANT MATCHES ---

def test_matches_below_threshold_are_excluded():
    matches = [
        _match("1", "Manchester United", "Liverpool", "Premier League", NOW + timedelta(hours=12)),
        _match("2", "Hillcrest", "Riverside", "Sunday League", NOW + timedelta(days=10)),
    ]
    context = ScoringContext(now=NOW)

    important = match_scorer.find_important_matches(matches, context)

    assert [m["external_match_id"] for m in important] == ["1"]
    top = important[0]
    # 9 competition + 17 teams + 2 derby + 1 stage + 6 timing
    assert top["importance_score"] == 35
    assert top["score_breakdown"]["rivalry"] == 2
    assert "Rivalry: North West Derby" in top["reasons"]


def test_results_are_ordered_by_score_then_kickoff():
    matches = [
        _match("late", "Arsenal", "Chelsea", "Premier League", NOW + timedelta(hours=20)),
        _match("early", "Chelsea", "Arsenal", "Premier League", NOW + timedelta(hours=4)),
        _match("top", "Real Madrid", "Barcelona", "La Liga", NOW + timedelta(hours=10)),
    ]

    important = match_scorer.find_important_matches(matches, ScoringContext(now=NOW))

    assert [m["external_match_id"] for m in important] == ["top", "early", "late"]


def test_betting_context_drops_started_matches():
    matches = [
        _match("past", "Real Madrid", "Barcelona", "La Liga", NOW - timedelta(hours=1)),
        _match("future", "Real Madrid", "Barcelona", "La Liga", NOW + timedelta(hours=5)),
    ]
    context = ScoringContext(now=NOW, content_type=ContentType.BETTING)

    important = match_scorer.find_important_matches(matches, context)

    assert [m["external_match_id"] for m in important] == ["future"]


def test_future_window_is_respected():
    matches = [_match("far", "Real Madrid", "Barcelona", "La Liga", NOW + timedelta(days=3))]

    assert match_scorer.find_important_matches(matches, ScoringContext(now=NOW, max_future_days=1)) == []
    assert len(match_scorer.find_important_matches(matches, ScoringContext(now=NOW, max_future_days=7))) == 1


def test_malformed_matches_are_skipped():
    matches = [
        {"external_match_id": "broken", "home_team": "Arsenal"},
        _match("ok", "Arsenal", "Chelsea", "Premier League", (NOW + timedelta(hours=3)).isoformat()),
    ]

    important = match_scorer.find_important_matches(matches, ScoringContext(now=NOW))

    assert [m["external_match_id"] for m in important] == ["ok"]


def test_scoring_stats_distribution():
    stats = match_scorer.scoring_stats([{"importance_score": s} for s in (30, 22, 16)])

    assert stats["total"] == 3
    assert stats["max"] == 30
    assert stats["distribution"]["premium_25_plus"] == 1
    assert stats["distribution"]["high_20_24"] == 1
    assert stats["distribution"]["medium_15_19"] == 1
