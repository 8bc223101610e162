# hike/models/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from hike.models.types import AnalysisResult, GameSummary, MediaOutcome


class Phase(str, Enum):
    IDLE = "idle"
    DATA_LOADING = "data_loading"
    DATA_READY = "data_ready"
    DATA_FAILED = "data_failed"
    ANALYSIS_RUNNING = "analysis_running"
    ANALYSIS_READY = "analysis_ready"
    ANALYSIS_FAILED = "analysis_failed"
    MEDIA_RUNNING = "media_running"
    MEDIA_READY = "media_ready"
    MEDIA_PARTIAL = "media_partial"
    MEDIA_FAILED = "media_failed"


class WizardStep(str, Enum):
    ASSETS = "assets"
    DATA = "data"
    STRATEGY = "strategy"
    SCRIPTS = "scripts"
    RENDER = "render"
    RESULTS = "results"


WIZARD_ORDER: Tuple[WizardStep, ...] = tuple(WizardStep)


@dataclass
class Drafts:
    """User-editable copies of the generated scripts and comparison stats."""
    team1_script: Optional[str] = None
    team2_script: Optional[str] = None
    narration_script: Optional[str] = None
    stats: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team1Script": self.team1_script,
            "team2Script": self.team2_script,
            "narrationScript": self.narration_script,
            "stats": {k: dict(v) for k, v in self.stats.items()},
        }


@dataclass
class PresentationState:
    phase: Phase = Phase.IDLE
    step: WizardStep = WizardStep.ASSETS
    error: Optional[str] = None
    warning: Optional[str] = None
    summary: Optional[GameSummary] = None
    analysis: Optional[AnalysisResult] = None
    assets: Dict[str, str] = field(default_factory=dict)  # side -> data URL
    drafts: Drafts = field(default_factory=Drafts)
    media: List[MediaOutcome] = field(default_factory=list)

    @property
    def loading(self) -> bool:
        return self.phase in (Phase.DATA_LOADING, Phase.ANALYSIS_RUNNING, Phase.MEDIA_RUNNING)

    @property
    def media_errors(self) -> Dict[str, str]:
        return {o.side: o.error for o in self.media if o.error}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "step": self.step.value,
            "loading": self.loading,
            "error": self.error,
            "warning": self.warning,
            "summary": self.summary.to_dict() if self.summary else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "assets": sorted(self.assets),
            "drafts": self.drafts.to_dict(),
            "media": [o.to_dict() for o in self.media],
        }
