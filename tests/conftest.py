"""Shared pytest fixtures for HIKE tests."""

import base64
import json
from io import BytesIO

import httpx
import pytest
from PIL import Image

from hike.core.credentials import StaticCredentialProvider
from hike.services.normalizer import parse_game_summary


# =============================================================================
# ESPN payloads
# =============================================================================

def _competitor(team_id, home_away, lines, score):
    c = {"id": team_id, "homeAway": home_away, "team": {"id": team_id}}
    if lines is not None:
        c["linescores"] = [{"displayValue": str(v)} for v in lines]
    if score is not None:
        c["score"] = score
    c["record"] = [{"type": "total", "summary": "15-2"}]
    return c


def _feed(
    away_lines=(10, 7, 3),
    home_lines=(3, 3),
    away_score="20",
    home_score="6",
    away_stats=None,
    home_stats=None,
    drop_competitor=None,
    drop_box_team=None,
):
    away_stats = away_stats if away_stats is not None else [
        {"name": "netPassingYards", "displayValue": "182"},
        {"name": "rushingYards", "displayValue": "64"},
        {"name": "turnovers", "displayValue": "1"},
    ]
    home_stats = home_stats if home_stats is not None else [
        {"name": "netPassingYards", "displayValue": "97"},
        {"name": "rushingYards", "displayValue": "120"},
        {"name": "turnovers", "displayValue": "0"},
    ]
    box_teams = [
        {
            "team": {
                "id": "12", "displayName": "Kansas City Chiefs", "abbreviation": "KC",
                "logo": "https://a.espncdn.com/i/teamlogos/nfl/500/kc.png", "color": "e31837",
            },
            "statistics": away_stats,
        },
        {
            "team": {
                "id": "21", "displayName": "Philadelphia Eagles", "abbreviation": "PHI",
                "logo": "https://a.espncdn.com/i/teamlogos/nfl/500/phi.png", "color": "004c54",
            },
            "statistics": home_stats,
        },
    ]
    competitors = [
        _competitor("12", "away", away_lines, away_score),
        _competitor("21", "home", home_lines, home_score),
    ]
    if drop_competitor == "home":
        competitors = competitors[:1]
    elif drop_competitor == "away":
        competitors = competitors[1:]
    if drop_box_team is not None:
        box_teams = [t for i, t in enumerate(box_teams) if i != drop_box_team]

    return {
        "boxscore": {"teams": box_teams},
        "header": {
            "competitions": [{
                "competitors": competitors,
                "status": {"period": 2, "displayClock": "0:00"},
                "venue": {"fullName": "Caesars Superdome"},
            }],
        },
        "drives": {
            "current": {"plays": [{"text": "Kickoff"}, {"text": "P.Mahomes pass short right to T.Kelce for 12 yards"}]},
            "previous": [
                {"team": {"abbreviation": "PHI"}, "description": "8 plays, 70 yards, 4:12", "displayResult": "Touchdown"},
                {"team": {"abbreviation": "KC"}, "description": "3 plays, 5 yards, 1:40", "displayResult": "Punt"},
            ],
        },
    }


@pytest.fixture
def make_feed():
    return _feed


@pytest.fixture
def feed():
    return _feed()


@pytest.fixture
def summary(feed):
    return parse_game_summary(feed)


# =============================================================================
# Gemini replies
# =============================================================================

def _gemini_reply(obj=None, text=None, sources=()):
    body_text = text if text is not None else json.dumps(obj)
    candidate = {"content": {"parts": [{"text": body_text}]}}
    if sources:
        candidate["groundingMetadata"] = {
            "groundingChunks": [{"web": {"title": t, "uri": u}} for t, u in sources]
        }
    return {"candidates": [candidate]}


@pytest.fixture
def gemini_reply():
    return _gemini_reply


@pytest.fixture
def analysis_obj():
    return {
        "halftimeRecap": "Kansas City leads 17-6 behind a sharp passing attack.",
        "mainPoints": ["Chiefs control time of possession", "Eagles rushing is working"],
        "narrationScript": "At the half, Kansas City 17, Philadelphia 6.",
        "team1Script": "KC Wolf here! 17 to 6 at the half.",
        "team2Script": "Swoop here! Down 6 to 17, but we're not done.",
        "halftimeScore": {"team1": 17, "team2": 6},
        "keysToWin": {
            "team1": {"name": "Kansas City Chiefs", "keys": ["Protect Mahomes", "Keep feeding Kelce", "Win turnovers"]},
            "team2": {"name": "Philadelphia Eagles", "keys": ["Run the ball", "Pressure up the middle", "Convert third downs"]},
        },
        "combinedStats": {
            "passing": {"team1": "182", "team2": "97"},
            "rushing": {"team1": "64", "team2": "120"},
            "turnovers": {"team1": "1", "team2": "0"},
        },
    }


# =============================================================================
# Misc
# =============================================================================

@pytest.fixture
def credentials():
    return StaticCredentialProvider("test-key")


@pytest.fixture
def no_credentials():
    return StaticCredentialProvider(None)


@pytest.fixture
def png_data_url():
    buf = BytesIO()
    Image.new("RGB", (1600, 900), (200, 30, 40)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def mock_transport():
    """Wrap a handler(request) -> httpx.Response, recording every request."""

    def _make(handler):
        seen = []

        def _wrapped(request):
            seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(_wrapped)
        transport.requests = seen
        return transport

    return _make
