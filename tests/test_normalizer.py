"""Tests for the ESPN summary normalizer."""

import asyncio

import pytest

from hike.core.errors import ConnectivityError, HttpStatusError, MissingTeamError, NormalizationError
from hike.services.normalizer import (
    halftime_score,
    load_summary,
    parse_game_summary,
    placeholder_summary,
    team_stats,
)


class TestHalftimeScore:
    def test_sums_first_two_periods(self, summary):
        # away lines 10, 7, 3 with a current total of 20
        assert summary.team1.score == 17
        assert summary.team2.score == 6

    def test_falls_back_to_current_score(self):
        c = {"linescores": [{"displayValue": "7"}], "score": "7"}
        assert halftime_score(c, "home") == 7

    def test_unparseable_period_uses_current_score(self):
        c = {"linescores": [{"displayValue": "7"}, {"displayValue": "-"}], "score": "10"}
        assert halftime_score(c, "away") == 10

    def test_no_score_at_all_raises(self):
        with pytest.raises(NormalizationError) as exc:
            halftime_score({"linescores": []}, "home")
        assert "home" in str(exc.value)

    def test_numeric_value_field(self):
        c = {"linescores": [{"value": 3.0}, {"value": 14.0}]}
        assert halftime_score(c, "away") == 17


class TestTeams:
    def test_identity_and_sides(self, summary):
        assert summary.team1.name == "Kansas City Chiefs"
        assert summary.team1.abbreviation == "KC"
        assert summary.team1.home_away == "away"
        assert summary.team2.name == "Philadelphia Eagles"
        assert summary.team2.home_away == "home"
        assert summary.team1.logo.endswith("kc.png")
        assert summary.team1.record == "15-2"

    def test_missing_home_competitor_names_home(self, make_feed):
        with pytest.raises(MissingTeamError) as exc:
            parse_game_summary(make_feed(drop_competitor="home"))
        assert exc.value.side == "home"
        assert "home" in str(exc.value)

    def test_missing_boxscore_team_names_unmatched_side(self, make_feed):
        # only the home boxscore entry survives, so position 0 is it and position 1 is missing
        with pytest.raises(MissingTeamError) as exc:
            parse_game_summary(make_feed(drop_box_team=0))
        assert exc.value.side == "away"

    def test_non_object_payload(self):
        with pytest.raises(NormalizationError):
            parse_game_summary(["not", "a", "summary"])

    def test_empty_payload_never_invents_teams(self):
        with pytest.raises(MissingTeamError):
            parse_game_summary({})


class TestStats:
    def test_flattened_to_display_values(self, summary):
        assert summary.team1.stats["netPassingYards"] == "182"
        assert summary.team2.stats["rushingYards"] == "120"

    def test_duplicate_name_last_write_wins(self):
        stats = team_stats([
            {"name": "totalYards", "displayValue": "100"},
            {"name": "totalYards", "displayValue": "250"},
        ])
        assert stats == {"totalYards": "250"}

    def test_incomplete_entries_skipped(self):
        stats = team_stats([{"name": "sacks"}, {"displayValue": "3"}, "junk", {"name": "fumbles", "displayValue": "0"}])
        assert stats == {"fumbles": "0"}

    def test_stats_are_read_only(self, summary):
        with pytest.raises(TypeError):
            summary.team1.stats["netPassingYards"] = "999"


class TestContext:
    def test_venue_and_clock(self, summary):
        assert summary.venue == "Caesars Superdome"
        assert summary.period == 2
        assert summary.clock == "0:00"

    def test_venue_fallback_to_game_info(self, make_feed):
        feed = make_feed()
        del feed["header"]["competitions"][0]["venue"]
        feed["gameInfo"] = {"venue": {"fullName": "Allegiant Stadium"}}
        assert parse_game_summary(feed).venue == "Allegiant Stadium"

    def test_venue_tbd(self, make_feed):
        feed = make_feed()
        del feed["header"]["competitions"][0]["venue"]
        assert parse_game_summary(feed).venue == "Venue TBD"

    def test_situation(self, summary):
        assert summary.situation.last_play_text.startswith("P.Mahomes pass")
        assert summary.situation.key_drives[0] == "PHI: 8 plays, 70 yards, 4:12 (Touchdown)"
        assert len(summary.situation.key_drives) == 2

    def test_situation_without_drives(self, make_feed):
        feed = make_feed()
        del feed["drives"]
        s = parse_game_summary(feed)
        assert s.situation.last_play_text == "No recent play data"
        assert s.situation.key_drives == ()


def test_normalize_is_deterministic(feed):
    a = parse_game_summary(feed)
    b = parse_game_summary(feed)
    assert a == b
    assert a.to_dict() == b.to_dict()
    assert not a.is_placeholder


def test_to_dict_round_trips_through_from_dict(summary):
    from hike.models.types import GameSummary

    again = GameSummary.from_dict(summary.to_dict())
    assert again.to_dict() == summary.to_dict()


@pytest.mark.parametrize("score", ["abc", "17.5", [17], True])
def test_from_dict_rejects_bad_score(summary, score):
    from hike.models.types import GameSummary

    payload = summary.to_dict()
    payload["team2"]["score"] = score
    with pytest.raises(ValueError, match="team2 score must be a whole number"):
        GameSummary.from_dict(payload)


def test_from_dict_numeric_string_score(summary):
    from hike.models.types import GameSummary

    payload = summary.to_dict()
    payload["team1"]["score"] = "21"
    payload["team2"]["score"] = None
    again = GameSummary.from_dict(payload)
    assert (again.team1.score, again.team2.score) == (21, 0)


# -----------------------------------------------------------
# load_summary / placeholder
# -----------------------------------------------------------
def _fetcher(result=None, exc=None):
    async def fetch():
        if exc is not None:
            raise exc
        return result
    return fetch


def test_load_summary_success(feed):
    raw, summary = asyncio.run(load_summary(_fetcher(feed)))
    assert raw is feed
    assert summary.team1.score == 17


@pytest.mark.parametrize("exc", [
    ConnectivityError("down"),
    HttpStatusError("bad", 503),
])
def test_feed_failure_propagates_by_default(exc):
    with pytest.raises(type(exc)):
        asyncio.run(load_summary(_fetcher(exc=exc)))


def test_feed_failure_placeholder_only_when_allowed():
    raw, summary = asyncio.run(
        load_summary(_fetcher(exc=ConnectivityError("down")), allow_placeholder=True)
    )
    assert raw is None
    assert summary.is_placeholder
    assert (summary.team1.score, summary.team2.score) == (0, 0)


def test_placeholder_masks_missing_team_when_allowed(make_feed):
    raw, summary = asyncio.run(
        load_summary(_fetcher(make_feed(drop_competitor="away")), allow_placeholder=True)
    )
    assert raw is None
    assert summary.is_placeholder


def test_placeholder_summary_is_flagged():
    s = placeholder_summary()
    assert s.is_placeholder
    assert s.to_dict()["isPlaceholder"] is True
