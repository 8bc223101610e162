# hike/services/normalizer.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from hike.core.errors import (
    ConnectivityError,
    HttpStatusError,
    MissingTeamError,
    NormalizationError,
)
from hike.models.types import GameSummary, Situation, TeamInfo

logger = logging.getLogger("hike.normalizer")

# ESPN lists the boxscore away team first.
_POSITION_SIDES = ("away", "home")
MAX_KEY_DRIVES = 3


def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return int(v)
    if isinstance(v, str):
        s = v.strip()
        try:
            return int(float(s)) if s else None
        except ValueError:
            return None
    if isinstance(v, Mapping):
        out = _as_int(v.get("value"))
        return out if out is not None else _as_int(v.get("displayValue"))
    return None


def _competition(data: Mapping[str, Any]) -> Dict[str, Any]:
    header = data.get("header") or {}
    comps = header.get("competitions") or [{}]
    return comps[0] or {}


def _team_id(c: Mapping[str, Any]) -> str:
    return str(c.get("id") or (c.get("team") or {}).get("id") or "")


def _unmatched_side(competitors: List[Dict[str, Any]], known_ids: List[str], fallback: str) -> str:
    for c in competitors:
        if _team_id(c) not in known_ids and c.get("homeAway"):
            return c["homeAway"]
    return fallback


def halftime_score(competitor: Mapping[str, Any], side: str) -> int:
    """
    Sum of the first two period line scores; the current total when fewer
    than two periods are on the feed.
    """
    lines = competitor.get("linescores") or []
    if len(lines) >= 2:
        q1, q2 = _as_int(lines[0]), _as_int(lines[1])
        if q1 is not None and q2 is not None:
            return q1 + q2
    current = _as_int(competitor.get("score"))
    if current is not None:
        return current
    raise NormalizationError(f"No score available for the {side} team")


def team_stats(statistics: Any) -> Dict[str, str]:
    """name -> displayValue, feed order, last write wins."""
    out: Dict[str, str] = {}
    for s in statistics or []:
        if not isinstance(s, Mapping):
            continue
        name, value = s.get("name"), s.get("displayValue")
        if name and value is not None:
            out[str(name)] = str(value)
    return out


def _record(competitor: Mapping[str, Any]) -> Optional[str]:
    rec = competitor.get("record")
    if isinstance(rec, str):
        return rec
    if isinstance(rec, list) and rec:
        first = rec[0] or {}
        return first.get("summary") or first.get("displayValue")
    return None


def _logo(team: Mapping[str, Any]) -> Optional[str]:
    if team.get("logo"):
        return team["logo"]
    logos = team.get("logos") or []
    return (logos[0] or {}).get("href") if logos else None


def _situation(data: Mapping[str, Any]) -> Situation:
    drives = data.get("drives") or {}
    plays = (drives.get("current") or {}).get("plays") or []
    last_text = (plays[-1] or {}).get("text") if plays else None

    previous = drives.get("previous") or []
    key_drives = []
    for d in previous[-MAX_KEY_DRIVES:]:
        d = d or {}
        team = (d.get("team") or {}).get("abbreviation") or (d.get("team") or {}).get("displayName")
        desc = d.get("description") or d.get("displayResult")
        if not desc:
            continue
        result = d.get("displayResult")
        line = f"{team}: {desc}" if team else desc
        if result and result != desc:
            line = f"{line} ({result})"
        key_drives.append(line)

    return Situation(
        last_play_text=last_text or "No recent play data",
        key_drives=tuple(key_drives),
    )


def parse_game_summary(data: Any) -> GameSummary:
    """
    Project a raw ESPN summary payload into a GameSummary.

    Raises MissingTeamError when either side cannot be resolved and
    NormalizationError for any other shape problem. Never invents a team.
    """
    if not isinstance(data, Mapping):
        raise NormalizationError("Game feed payload is not an object")

    box_teams = (data.get("boxscore") or {}).get("teams") or []
    comp = _competition(data)
    competitors = comp.get("competitors") or []

    known_ids = [str(((bt or {}).get("team") or {}).get("id") or "") for bt in box_teams]
    teams: List[TeamInfo] = []

    for idx, fallback_side in enumerate(_POSITION_SIDES):
        bt = (box_teams[idx] if idx < len(box_teams) else None) or {}
        team = bt.get("team") or {}
        tid = str(team.get("id") or "")
        if not tid:
            side = _unmatched_side(competitors, known_ids, fallback_side)
            raise MissingTeamError(side, "no boxscore team entry")

        competitor = next((c for c in competitors if _team_id(c) == tid), None)
        side = (competitor or {}).get("homeAway") or bt.get("homeAway") or fallback_side
        if competitor is None:
            raise MissingTeamError(side, f"no competitor record for team {tid}")

        teams.append(
            TeamInfo(
                id=tid,
                name=team.get("displayName") or team.get("name") or tid,
                abbreviation=team.get("abbreviation") or "",
                logo=_logo(team),
                color=team.get("color"),
                score=halftime_score(competitor, side),
                home_away=side,
                record=_record(competitor),
                stats=team_stats(bt.get("statistics")),
            )
        )

    status = comp.get("status") or {}
    venue = (
        (comp.get("venue") or {}).get("fullName")
        or ((data.get("gameInfo") or {}).get("venue") or {}).get("fullName")
        or "Venue TBD"
    )

    return GameSummary(
        team1=teams[0],
        team2=teams[1],
        period=_as_int(status.get("period")),
        clock=status.get("displayClock"),
        venue=venue,
        situation=_situation(data),
    )


def placeholder_summary() -> GameSummary:
    """Fixed 0-0 matchup shown only when placeholder masking is switched on."""
    return GameSummary(
        team1=TeamInfo(
            id="12",
            name="Kansas City Chiefs",
            abbreviation="KC",
            logo="https://a.espncdn.com/i/teamlogos/nfl/500/kc.png",
            color="e31837",
            score=0,
            home_away="away",
        ),
        team2=TeamInfo(
            id="21",
            name="Philadelphia Eagles",
            abbreviation="PHI",
            logo="https://a.espncdn.com/i/teamlogos/nfl/500/phi.png",
            color="004c54",
            score=0,
            home_away="home",
        ),
        period=2,
        clock="0:00",
        venue="Caesars Superdome",
        is_placeholder=True,
    )


async def load_summary(
    fetch: Callable[[], Awaitable[Dict[str, Any]]],
    *,
    allow_placeholder: bool = False,
) -> Tuple[Optional[Dict[str, Any]], GameSummary]:
    """
    Fetch and normalize. Returns (raw, summary); raw is None when the
    placeholder was substituted.
    """
    try:
        raw = await fetch()
        return raw, parse_game_summary(raw)
    except (ConnectivityError, HttpStatusError, NormalizationError) as e:
        if not allow_placeholder:
            raise
        logger.warning("game feed unavailable, serving placeholder summary: %s", e)
        return None, placeholder_summary()
