# hike/services/prompt_builder.py
"""
Prompt templates for the halftime analysis calls.

Everything here is pure string/dict building: no I/O, no validation. Scores
and stat values are written into the prompt literally so the model has no
room to substitute its own.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from hike.models.types import AnalysisResult, GameSummary, InlineImage, TeamInfo

# (label, stat key on the feed, default when absent)
COMPARISON_STATS = (
    ("passing", "netPassingYards", "N/A"),
    ("rushing", "rushingYards", "N/A"),
    ("turnovers", "turnovers", "0"),
)

MAX_SCRIPT_WORDS = 60


@dataclass(frozen=True)
class Prompt:
    text: str
    response_schema: Optional[Dict[str, Any]] = None
    images: Tuple[InlineImage, ...] = ()


# =============================================================================
# OUTPUT SHAPES
# =============================================================================

def _string(desc: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "STRING"}
    if desc:
        out["description"] = desc
    return out


def _string_list(desc: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}
    if desc:
        out["description"] = desc
    return out


def _pair(item_type: str) -> Dict[str, Any]:
    return {
        "type": "OBJECT",
        "properties": {"team1": {"type": item_type}, "team2": {"type": item_type}},
    }


_TEAM_KEYS = {
    "type": "OBJECT",
    "properties": {"name": _string(), "keys": _string_list()},
    "required": ["name", "keys"],
}

_KEYS_TO_WIN = {
    "type": "OBJECT",
    "properties": {"team1": _TEAM_KEYS, "team2": _TEAM_KEYS},
    "required": ["team1", "team2"],
}

STRATEGY_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "halftimeRecap": _string(
            "A professional TV broadcast recap of the first half events, momentum, and leading team."
        ),
        "mainPoints": _string_list("Two to four one-sentence quick hits."),
        "keysToWin": _KEYS_TO_WIN,
    },
    "required": ["halftimeRecap", "keysToWin"],
}

SCRIPTS_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "narrationScript": _string("Full halftime report for a single narrator."),
        "team1Script": _string("Mascot avatar script for team 1."),
        "team2Script": _string("Mascot avatar script for team 2."),
    },
    "required": ["team1Script", "team2Script"],
}

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        **STRATEGY_SCHEMA["properties"],
        **SCRIPTS_SCHEMA["properties"],
        "halftimeScore": _pair("INTEGER"),
        "combinedStats": {
            "type": "OBJECT",
            "properties": {label: _pair("STRING") for label, _, _ in COMPARISON_STATS},
        },
    },
    "required": ["halftimeRecap", "keysToWin"],
}


# =============================================================================
# SERIALIZATION
# =============================================================================

def stat_value(team: TeamInfo, key: str, default: str) -> str:
    return team.stats.get(key) or default


def serialize_score(summary: GameSummary) -> str:
    lines = []
    for t in summary.teams:
        lines.append(f"- {t.name} ({t.abbreviation}): {t.score}")
    return "\n".join(lines)


def serialize_stats(summary: GameSummary) -> str:
    t1, t2 = summary.teams
    return f"{json.dumps(dict(t1.stats), sort_keys=True)} vs {json.dumps(dict(t2.stats), sort_keys=True)}"


def serialize_situation(summary: GameSummary) -> str:
    lines = [
        f"Period {summary.period or '?'}, clock {summary.clock or '?'} at {summary.venue}.",
        f"Last play: {summary.situation.last_play_text}",
    ]
    for d in summary.situation.key_drives:
        lines.append(f"Drive: {d}")
    return "\n".join(lines)


def _image_instructions(summary: GameSummary, images: Mapping[str, InlineImage]) -> str:
    if not images:
        return ""
    names = {"team1": summary.team1.name, "team2": summary.team2.name}
    order = [f"image {i + 1} is the {names.get(side, side)} mascot" for i, side in enumerate(images)]
    return (
        "\nMASCOT IMAGES:\n"
        f"- {'; '.join(order)}.\n"
        "- Reference each mascot's visual traits (colors, costume, expression) in its script.\n"
    )


def _inline_shape(summary: GameSummary, include_strategy: bool, include_scripts: bool) -> str:
    t1, t2 = summary.teams
    shape: Dict[str, Any] = {}
    if include_strategy:
        shape["mainPoints"] = ["Point 1", "Point 2"]
        shape["halftimeRecap"] = "Summary string"
        shape["keysToWin"] = {
            "team1": {"name": t1.name, "keys": ["Key 1", "Key 2", "Key 3"]},
            "team2": {"name": t2.name, "keys": ["Key 1", "Key 2", "Key 3"]},
        }
    if include_scripts:
        shape["narrationScript"] = "Full report"
        shape["team1Script"] = f"Script for the {t1.name} mascot"
        shape["team2Script"] = f"Script for the {t2.name} mascot"
    if include_strategy and include_scripts:
        shape["halftimeScore"] = {"team1": t1.score, "team2": t2.score}
        shape["combinedStats"] = {
            label: {"team1": stat_value(t1, key, dflt), "team2": stat_value(t2, key, dflt)}
            for label, key, dflt in COMPARISON_STATS
        }
    return "\nReturn exactly this JSON shape and nothing else:\n" + json.dumps(shape, indent=2)


_HEADER = """You are a professional broadcast analyst for an NFL halftime show.

HALFTIME SCORE DATA:
{score}

GAME SITUATION:
{situation}

STRICT ACCURACY RULES:
1. You MUST use the score above. Do NOT use any other score.
2. Reference specific team stats: {stats}
3. Do not mention APIs, data sources, or technical terms.
4. No hype or speculation beyond what the data supports.
"""

_STRATEGY_TASK = """
TASK: Generate the halftime analysis.
- Halftime recap: what happened for each team, who is leading and why, key drives, standout players.
- Second-half keys to win: for each team, strategy, improvements needed, and what to keep doing well.
- Professional TV broadcast tone, clear language suitable for an AI avatar narration.
"""

_SCRIPTS_TASK = """
TASK: Write the mascot avatar scripts.
- Start with the HALFTIME SCORE.
- Include 3 TACTICAL keys for the 2nd half using "/" separator.
- Persona: professional, high-energy sports mascot analyst.
- At most {words} words per mascot script.
"""


def _finish(
    text: str,
    schema: Dict[str, Any],
    schema_mode: bool,
    summary: GameSummary,
    images: Mapping[str, InlineImage],
    include_strategy: bool,
    include_scripts: bool,
) -> Prompt:
    text = text + _image_instructions(summary, images)
    if schema_mode:
        return Prompt(text=text, response_schema=schema, images=tuple(images.values()))
    text = text + _inline_shape(summary, include_strategy, include_scripts)
    return Prompt(text=text, response_schema=None, images=tuple(images.values()))


def _header(summary: GameSummary) -> str:
    return _HEADER.format(
        score=serialize_score(summary),
        situation=serialize_situation(summary),
        stats=serialize_stats(summary),
    )


def build_analysis_prompt(
    summary: GameSummary,
    images: Optional[Mapping[str, InlineImage]] = None,
    prior_strategy: Optional[str] = None,
    schema_mode: bool = True,
) -> Prompt:
    """
    One-shot prompt: recap, keys, scripts and stat comparison together.

    With `schema_mode` False the output shape is spelled out inline, for calls
    where schema-constrained decoding is unavailable (e.g. with search
    grounding enabled).
    """
    images = dict(images or {})
    text = _header(summary) + _STRATEGY_TASK + _SCRIPTS_TASK.format(words=MAX_SCRIPT_WORDS)
    if prior_strategy:
        text += f"\nAPPROVED STRATEGY (keep the scripts consistent with it):\n{prior_strategy}\n"
    return _finish(text, ANALYSIS_SCHEMA, schema_mode, summary, images, True, True)


def build_strategy_prompt(
    summary: GameSummary,
    images: Optional[Mapping[str, InlineImage]] = None,
    schema_mode: bool = True,
) -> Prompt:
    images = dict(images or {})
    text = _header(summary) + _STRATEGY_TASK
    return _finish(text, STRATEGY_SCHEMA, schema_mode, summary, images, True, False)


def build_scripts_prompt(
    summary: GameSummary,
    strategy_text: str,
    images: Optional[Mapping[str, InlineImage]] = None,
    schema_mode: bool = True,
) -> Prompt:
    images = dict(images or {})
    text = (
        _header(summary)
        + f"\nAPPROVED STRATEGY:\n{strategy_text}\n"
        + _SCRIPTS_TASK.format(words=MAX_SCRIPT_WORDS)
    )
    return _finish(text, SCRIPTS_SCHEMA, schema_mode, summary, images, False, True)


# =============================================================================
# PLAIN-TEXT RENDERINGS
# =============================================================================

def _numbered(keys) -> str:
    if not keys:
        return "No keys provided"
    return "\n".join(f"{i + 1}. {k}" for i, k in enumerate(keys))


def strategy_text(analysis: AnalysisResult) -> str:
    """Recap and keys as plain text, fed into the scripts stage."""
    return (
        f"{analysis.halftime_recap}\n\n"
        f"{analysis.team1_keys.name}:\n{_numbered(analysis.team1_keys.keys)}\n\n"
        f"{analysis.team2_keys.name}:\n{_numbered(analysis.team2_keys.keys)}"
    )


def compose_broadcast_script(summary: GameSummary, analysis: AnalysisResult) -> str:
    t1, t2 = summary.teams
    return (
        "Hello football fans! This is your halftime analysis.\n\n"
        f"{t1.name} {t1.score}, {t2.name} {t2.score}.\n\n"
        f"{analysis.halftime_recap}\n\n"
        "Now let's look at the keys to victory for the second half.\n\n"
        f"For {t1.name}:\n{_numbered(analysis.team1_keys.keys)}\n\n"
        f"For {t2.name}:\n{_numbered(analysis.team2_keys.keys)}\n\n"
        "Enjoy the second half!"
    )
