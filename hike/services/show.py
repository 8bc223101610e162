# hike/services/show.py
"""
Halftime show orchestration.

HalftimeShow owns one PresentationState and moves it through
load -> analysis -> media (or the step-by-step wizard). Component errors stop
here: each action records a user-facing message on the state instead of
raising.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from hike.core.credentials import CredentialProvider
from hike.core.errors import ConfigurationError, HikeError, user_message
from hike.models.state import WIZARD_ORDER, Drafts, Phase, PresentationState, WizardStep
from hike.models.types import AnalysisResult, InlineImage, MediaRequest, TeamInfo
from hike.services.gemini import GeminiClient, parse_scripts
from hike.services.images import (
    ANALYSIS_MAX_EDGE,
    VIDEO_MAX_EDGE,
    parse_data_url,
    prepare_image,
)
from hike.services.media import MediaClient, MediaStore, render_matchup
from hike.services.normalizer import load_summary
from hike.services.prompt_builder import (
    build_analysis_prompt,
    build_scripts_prompt,
    build_strategy_prompt,
    compose_broadcast_script,
    strategy_text,
)

logger = logging.getLogger("hike.show")

SIDES = ("team1", "team2")
PLACEHOLDER_WARNING = (
    "Live game data is unavailable; showing a placeholder matchup. Scores are not real."
)


class HalftimeShow:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[Dict[str, Any]]],
        analysis_client: GeminiClient,
        credentials: CredentialProvider,
        media_client: Optional[MediaClient] = None,
        media_credentials: Optional[CredentialProvider] = None,
        store: Optional[MediaStore] = None,
        grounding: bool = True,
        allow_placeholder: bool = False,
    ):
        self._fetch = fetch
        self.analysis_client = analysis_client
        self.credentials = credentials
        self.media_client = media_client
        self.media_credentials = media_credentials or credentials
        self.store = store or MediaStore()
        self.grounding = grounding
        self.allow_placeholder = allow_placeholder
        self.state = PresentationState()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _fail(self, phase: Phase, exc: BaseException) -> PresentationState:
        if isinstance(exc, HikeError):
            logger.warning("%s: %s", phase.value, exc)
        else:
            logger.error("unexpected error in %s", phase.value, exc_info=exc)
        self.state.phase = phase
        self.state.error = user_message(exc)
        return self.state

    def _needs_summary(self) -> bool:
        if self.state.summary is None:
            self.state.error = "Game data not loaded. Please wait for game data to load."
            return True
        return False

    def _needs_credential(self, provider: CredentialProvider, failed: Phase) -> bool:
        if provider.has_credential():
            return False
        try:
            provider.request_credential()
        except ConfigurationError as e:
            self._fail(failed, e)
            return True
        return False

    def _images(self, max_edge: int) -> Dict[str, InlineImage]:
        out: Dict[str, InlineImage] = {}
        for side in SIDES:
            url = self.state.assets.get(side)
            img = prepare_image(url, max_edge) if url else None
            if img is not None:
                out[side] = img
        return out

    def _default_names(self):
        s = self.state.summary
        return (s.team1.name, s.team2.name) if s else ("Team 1", "Team 2")

    def _seed_drafts(self, analysis: AnalysisResult) -> None:
        self.state.drafts = Drafts(
            team1_script=analysis.team1_script,
            team2_script=analysis.team2_script,
            narration_script=analysis.narration_script,
            stats={k: {"team1": a, "team2": b} for k, (a, b) in analysis.combined_stats.items()},
        )

    # ------------------------------------------------------------------
    # data
    # ------------------------------------------------------------------
    async def load_data(self) -> PresentationState:
        self.state.phase = Phase.DATA_LOADING
        self.state.error = None
        self.state.warning = None
        try:
            _, summary = await load_summary(self._fetch, allow_placeholder=self.allow_placeholder)
        except Exception as e:
            return self._fail(Phase.DATA_FAILED, e)

        self.state.summary = summary
        if summary.is_placeholder:
            self.state.warning = PLACEHOLDER_WARNING
        self.state.phase = Phase.DATA_READY
        logger.info("show data ready: %s %d - %s %d",
                    summary.team1.abbreviation, summary.team1.score,
                    summary.team2.abbreviation, summary.team2.score)
        return self.state

    def set_assets(self, team1: Optional[str] = None, team2: Optional[str] = None) -> PresentationState:
        """Store uploaded mascot images (data URLs). None leaves a side as is."""
        for side, url in (("team1", team1), ("team2", team2)):
            if url is None:
                continue
            if parse_data_url(url) is None:
                raise ValueError(f"{side} image must be a base64 image data URL")
            self.state.assets[side] = url
        return self.state

    # ------------------------------------------------------------------
    # analysis
    # ------------------------------------------------------------------
    async def _run_analysis(self, build) -> PresentationState:
        if self._needs_summary():
            return self.state
        if self._needs_credential(self.credentials, Phase.ANALYSIS_FAILED):
            return self.state

        self.state.phase = Phase.ANALYSIS_RUNNING
        self.state.error = None
        try:
            prompt = build(self._images(ANALYSIS_MAX_EDGE))
            analysis = await self.analysis_client.generate(
                prompt,
                grounding=self.grounding,
                temperature=0.0,
                default_names=self._default_names(),
            )
        except Exception as e:
            return self._fail(Phase.ANALYSIS_FAILED, e)

        self.state.analysis = analysis
        self._seed_drafts(analysis)
        self.state.phase = Phase.ANALYSIS_READY
        return self.state

    async def generate_analysis(self) -> PresentationState:
        """One-shot: recap, keys, scripts and stats in a single call."""
        self.state.analysis = None
        return await self._run_analysis(
            lambda images: build_analysis_prompt(
                self.state.summary, images, schema_mode=not self.grounding
            )
        )

    async def generate_strategy(self) -> PresentationState:
        return await self._run_analysis(
            lambda images: build_strategy_prompt(
                self.state.summary, images, schema_mode=not self.grounding
            )
        )

    async def generate_scripts(self) -> PresentationState:
        if self.state.analysis is None:
            self.state.error = "Generate the strategy before writing scripts."
            return self.state
        if self._needs_credential(self.credentials, Phase.ANALYSIS_FAILED):
            return self.state

        self.state.phase = Phase.ANALYSIS_RUNNING
        self.state.error = None
        try:
            prompt = build_scripts_prompt(
                self.state.summary,
                strategy_text(self.state.analysis),
                self._images(ANALYSIS_MAX_EDGE),
                schema_mode=True,
            )
            result = await self.analysis_client.generate_json(prompt, grounding=False, temperature=0.0)
            scripts = parse_scripts(result.data, result.text)
        except Exception as e:
            return self._fail(Phase.ANALYSIS_FAILED, e)

        self.state.analysis = dataclasses.replace(
            self.state.analysis,
            team1_script=scripts["team1Script"],
            team2_script=scripts["team2Script"],
            narration_script=scripts["narrationScript"] or self.state.analysis.narration_script,
        )
        self.state.drafts.team1_script = scripts["team1Script"]
        self.state.drafts.team2_script = scripts["team2Script"]
        if scripts["narrationScript"]:
            self.state.drafts.narration_script = scripts["narrationScript"]
        self.state.phase = Phase.ANALYSIS_READY
        return self.state

    def update_drafts(
        self,
        team1_script: Optional[str] = None,
        team2_script: Optional[str] = None,
        narration_script: Optional[str] = None,
        stats: Optional[Dict[str, Dict[str, str]]] = None,
    ) -> PresentationState:
        d = self.state.drafts
        if team1_script is not None:
            d.team1_script = team1_script
        if team2_script is not None:
            d.team2_script = team2_script
        if narration_script is not None:
            d.narration_script = narration_script
        if stats is not None:
            d.stats = {k: dict(v) for k, v in stats.items()}
        return self.state

    def broadcast_script(self) -> Optional[str]:
        if self.state.summary is None or self.state.analysis is None:
            return None
        return compose_broadcast_script(self.state.summary, self.state.analysis)

    # ------------------------------------------------------------------
    # media
    # ------------------------------------------------------------------
    def _script_for(self, side: str, team: TeamInfo) -> str:
        a = self.state.analysis
        draft = getattr(self.state.drafts, f"{side}_script")
        if draft:
            return draft
        generated = getattr(a, f"{side}_script") if a else None
        if generated:
            return generated
        keys = (a.team1_keys if side == "team1" else a.team2_keys).keys if a else ()
        return f"Halftime: {team.name} {team.score}. " + " / ".join(keys)

    def reset_media(self) -> None:
        for o in self.state.media:
            if o.handle is not None:
                self.store.release(o.handle.media_id)
        self.state.media = []

    async def render_videos(self) -> PresentationState:
        if self.state.phase is Phase.MEDIA_RUNNING:
            logger.info("show media: render already running, request ignored")
            return self.state
        if self._needs_summary():
            return self.state
        if self.state.analysis is None:
            self.state.error = "Please generate analysis first."
            return self.state
        if self.media_client is None:
            return self._fail(Phase.MEDIA_FAILED, ConfigurationError("Video generation is not configured."))
        if self._needs_credential(self.media_credentials, Phase.MEDIA_FAILED):
            return self.state

        self.reset_media()
        self.state.phase = Phase.MEDIA_RUNNING
        self.state.error = None

        images = self._images(VIDEO_MAX_EDGE)
        requests: List[MediaRequest] = []
        for side, team in zip(SIDES, self.state.summary.teams):
            requests.append(
                MediaRequest(
                    side=side,
                    label=f"{team.name} mascot",
                    script=self._script_for(side, team),
                    image=images.get(side),
                )
            )

        try:
            outcomes = await render_matchup(self.media_client, requests, self.store)
        except Exception as e:
            return self._fail(Phase.MEDIA_FAILED, e)

        self.state.media = outcomes
        ok = sum(1 for o in outcomes if o.ok)
        if ok == len(outcomes):
            self.state.phase = Phase.MEDIA_READY
        elif ok:
            self.state.phase = Phase.MEDIA_PARTIAL
        else:
            self.state.phase = Phase.MEDIA_FAILED
            self.state.error = "Video generation failed for both teams."
        logger.info("show media: %d/%d videos ready", ok, len(outcomes))
        return self.state

    # ------------------------------------------------------------------
    # wizard
    # ------------------------------------------------------------------
    def _gate(self, step: WizardStep) -> Optional[str]:
        """Reason the wizard cannot leave `step`, or None."""
        s = self.state
        if step is WizardStep.DATA and s.summary is None:
            return "Load the game data before continuing."
        if step is WizardStep.STRATEGY and s.analysis is None:
            return "Generate the strategy before continuing."
        if step is WizardStep.SCRIPTS and not (s.drafts.team1_script and s.drafts.team2_script):
            return "Both mascot scripts are required before rendering."
        if step is WizardStep.RENDER and s.phase not in (Phase.MEDIA_READY, Phase.MEDIA_PARTIAL):
            return "Render at least one video before viewing results."
        return None

    def advance(self) -> bool:
        idx = WIZARD_ORDER.index(self.state.step)
        if idx == len(WIZARD_ORDER) - 1:
            return False
        reason = self._gate(self.state.step)
        if reason:
            self.state.error = reason
            return False
        self.state.step = WIZARD_ORDER[idx + 1]
        self.state.error = None
        return True

    def back(self) -> bool:
        idx = WIZARD_ORDER.index(self.state.step)
        if idx == 0:
            return False
        self.state.step = WIZARD_ORDER[idx - 1]
        return True

    def close(self) -> None:
        self.reset_media()
