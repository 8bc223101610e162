# hike/models/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def _frozen_map(m: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(m or {}))


@dataclass(frozen=True)
class TeamInfo:
    id: str
    name: str
    abbreviation: str
    logo: Optional[str]
    color: Optional[str]
    score: int
    home_away: Optional[str] = None
    record: Optional[str] = None
    stats: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "stats", _frozen_map(self.stats))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "logo": self.logo,
            "color": self.color,
            "score": self.score,
            "homeAway": self.home_away,
            "record": self.record,
            "stats": dict(self.stats),
        }


@dataclass(frozen=True)
class Situation:
    last_play_text: str = "No recent play data"
    key_drives: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"lastPlayText": self.last_play_text, "keyDrives": list(self.key_drives)}


@dataclass(frozen=True)
class GameSummary:
    team1: TeamInfo
    team2: TeamInfo
    period: Optional[int]
    clock: Optional[str]
    venue: str
    situation: Situation = field(default_factory=Situation)
    is_placeholder: bool = False

    @property
    def teams(self) -> Tuple[TeamInfo, TeamInfo]:
        return (self.team1, self.team2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team1": self.team1.to_dict(),
            "team2": self.team2.to_dict(),
            "period": self.period,
            "clock": self.clock,
            "venue": self.venue,
            "situation": self.situation.to_dict(),
            "isPlaceholder": self.is_placeholder,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "GameSummary":
        """
        Rebuild a summary a client echoed back to us.

        Raises ValueError when a team entry, score or stats table has the wrong shape.
        """

        def _score(slot: str, v: Any) -> int:
            if v is None or v == "":
                return 0
            if isinstance(v, bool):
                raise ValueError(f"{slot} score must be a whole number")
            try:
                return int(v)
            except (TypeError, ValueError):
                raise ValueError(f"{slot} score must be a whole number") from None

        def _team(slot: str, t: Any) -> TeamInfo:
            if not isinstance(t, Mapping):
                raise ValueError(f"{slot} must be an object")
            stats = t.get("stats") or {}
            if not isinstance(stats, Mapping):
                raise ValueError(f"{slot} stats must be an object")
            return TeamInfo(
                id=str(t.get("id") or ""),
                name=t.get("name") or "Unknown",
                abbreviation=t.get("abbreviation") or "",
                logo=t.get("logo"),
                color=t.get("color"),
                score=_score(slot, t.get("score")),
                home_away=t.get("homeAway"),
                record=t.get("record"),
                stats={str(k): str(v) for k, v in stats.items()},
            )

        sit = d.get("situation") or {}
        if not isinstance(sit, Mapping):
            raise ValueError("situation must be an object")
        return cls(
            team1=_team("team1", d.get("team1") or {}),
            team2=_team("team2", d.get("team2") or {}),
            period=d.get("period"),
            clock=d.get("clock"),
            venue=d.get("venue") or "Venue TBD",
            situation=Situation(
                last_play_text=sit.get("lastPlayText") or "No recent play data",
                key_drives=tuple(sit.get("keyDrives") or ()),
            ),
            is_placeholder=bool(d.get("isPlaceholder", False)),
        )


@dataclass(frozen=True)
class Source:
    title: str
    uri: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "uri": self.uri}


@dataclass(frozen=True)
class TeamKeys:
    name: str
    keys: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "keys": list(self.keys)}


@dataclass(frozen=True)
class AnalysisResult:
    halftime_recap: str
    team1_keys: TeamKeys
    team2_keys: TeamKeys
    main_points: Tuple[str, ...] = ()
    narration_script: Optional[str] = None
    team1_script: Optional[str] = None
    team2_script: Optional[str] = None
    halftime_score: Optional[Tuple[Optional[int], Optional[int]]] = None
    combined_stats: Mapping[str, Tuple[str, str]] = field(default_factory=dict)
    sources: Tuple[Source, ...] = ()
    raw_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "halftimeRecap": self.halftime_recap,
            "keysToWin": {"team1": self.team1_keys.to_dict(), "team2": self.team2_keys.to_dict()},
            "mainPoints": list(self.main_points),
            "narrationScript": self.narration_script,
            "team1Script": self.team1_script,
            "team2Script": self.team2_script,
            "combinedStats": {k: {"team1": a, "team2": b} for k, (a, b) in self.combined_stats.items()},
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.halftime_score is not None:
            out["halftimeScore"] = {"team1": self.halftime_score[0], "team2": self.halftime_score[1]}
        return out


@dataclass(frozen=True)
class InlineImage:
    """Image bytes ready for upload, already base64-encoded."""
    mime_type: str
    data: str


@dataclass(frozen=True)
class MediaRequest:
    side: str  # team1 | team2
    label: str
    script: str
    image: Optional[InlineImage] = None


@dataclass(frozen=True)
class MediaHandle:
    media_id: str
    side: str
    mime_type: str
    size: int

    @property
    def url(self) -> str:
        return f"/api/media/{self.media_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mediaId": self.media_id,
            "side": self.side,
            "url": self.url,
            "mimeType": self.mime_type,
            "size": self.size,
        }


@dataclass(frozen=True)
class MediaOutcome:
    side: str
    label: str
    handle: Optional[MediaHandle] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.handle is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side,
            "label": self.label,
            "video": self.handle.to_dict() if self.handle else None,
            "error": self.error,
        }
