"""Tests for the HalftimeShow state machine and wizard."""

import asyncio
import json

import httpx
import pytest

from hike.core.credentials import StaticCredentialProvider
from hike.core.errors import ConnectivityError, MediaJobError
from hike.models.state import Phase, WizardStep
from hike.services.gemini import GeminiClient
from hike.services.media import MediaClient, MediaStore
from hike.services.show import PLACEHOLDER_WARNING, HalftimeShow


async def _no_sleep(_s):
    return None


class FakeMediaClient(MediaClient):
    provider = "fake"

    def __init__(self, fail=()):
        super().__init__(StaticCredentialProvider("k"), sleep=_no_sleep)
        self.fail = set(fail)
        self.requests = []

    async def submit(self, request):
        raise AssertionError("render is faked whole")

    async def check(self, job_id):
        raise AssertionError("render is faked whole")

    async def render(self, request):
        self.requests.append(request)
        await asyncio.sleep(0)
        if request.side in self.fail:
            raise MediaJobError("Video generation failed: Unknown error")
        return (b"mp4-" + request.side.encode(), "video/mp4")


@pytest.fixture
def make_show(feed, gemini_reply, analysis_obj, mock_transport):
    def _make(
        fetch_exc=None,
        reply=None,
        credentials=None,
        media=None,
        allow_placeholder=False,
        grounding=False,
    ):
        async def fetch():
            if fetch_exc is not None:
                raise fetch_exc
            return feed

        # a list of replies is served in order, the last one repeating
        replies = list(reply) if isinstance(reply, list) else [
            reply if reply is not None else gemini_reply(analysis_obj)
        ]

        def handler(request):
            payload = replies.pop(0) if len(replies) > 1 else replies[0]
            return httpx.Response(200, json=payload)

        transport = mock_transport(handler)
        creds = credentials or StaticCredentialProvider("k")
        show = HalftimeShow(
            fetch=fetch,
            analysis_client=GeminiClient(creds, transport=transport),
            credentials=creds,
            media_client=media,
            store=MediaStore(),
            grounding=grounding,
            allow_placeholder=allow_placeholder,
        )
        show.transport = transport
        return show

    return _make


def _run(coro):
    return asyncio.run(coro)


# =============================================================================
# data
# =============================================================================

def test_load_data(make_show):
    show = make_show()
    state = _run(show.load_data())
    assert state.phase is Phase.DATA_READY
    assert state.summary.team1.score == 17
    assert state.error is None
    assert state.warning is None


def test_load_failure_is_reported_not_masked(make_show):
    show = make_show(fetch_exc=ConnectivityError("Could not reach the game stats service."))
    state = _run(show.load_data())
    assert state.phase is Phase.DATA_FAILED
    assert state.summary is None
    assert state.error == "Could not reach the game stats service."


def test_load_failure_with_placeholder_warns(make_show):
    show = make_show(fetch_exc=ConnectivityError("down"), allow_placeholder=True)
    state = _run(show.load_data())
    assert state.phase is Phase.DATA_READY
    assert state.summary.is_placeholder
    assert state.warning == PLACEHOLDER_WARNING


# =============================================================================
# analysis
# =============================================================================

def test_analysis_before_data(make_show):
    show = make_show()
    state = _run(show.generate_analysis())
    assert state.error == "Game data not loaded. Please wait for game data to load."
    assert show.transport.requests == []


def test_generate_analysis(make_show):
    show = make_show()
    _run(show.load_data())
    state = _run(show.generate_analysis())
    assert state.phase is Phase.ANALYSIS_READY
    assert state.analysis.halftime_score == (17, 6)
    assert state.drafts.team1_script.startswith("KC Wolf here!")
    assert state.drafts.stats["passing"] == {"team1": "182", "team2": "97"}
    assert not state.loading


def test_analysis_without_key(make_show):
    show = make_show(credentials=StaticCredentialProvider(None))
    _run(show.load_data())
    state = _run(show.generate_analysis())
    assert state.phase is Phase.ANALYSIS_FAILED
    assert "not configured" in state.error
    assert show.transport.requests == []


def test_analysis_parse_failure_is_not_retried(make_show, gemini_reply):
    show = make_show(reply=gemini_reply(text="Sorry, no JSON today."))
    _run(show.load_data())
    state = _run(show.generate_analysis())
    assert state.phase is Phase.ANALYSIS_FAILED
    assert state.analysis is None
    assert state.error == "The analysis response could not be read as JSON."
    assert len(show.transport.requests) == 1


def test_grounding_switches_to_inline_shape(make_show):
    show = make_show(grounding=True)
    _run(show.load_data())
    _run(show.generate_analysis())
    body = json.loads(show.transport.requests[0].content)
    assert body["tools"] == [{"google_search": {}}]
    assert "responseSchema" not in body["generationConfig"]
    assert "Return exactly this JSON shape" in body["contents"][0]["parts"][0]["text"]


def test_assets_are_sent_with_analysis(make_show, png_data_url):
    show = make_show()
    show.set_assets(team1=png_data_url)
    _run(show.load_data())
    _run(show.generate_analysis())
    parts = json.loads(show.transport.requests[0].content)["contents"][0]["parts"]
    assert len(parts) == 2
    assert parts[1]["inline_data"]["mime_type"] == "image/jpeg"


def test_bad_asset_rejected(make_show):
    show = make_show()
    with pytest.raises(ValueError):
        show.set_assets(team2="http://example.com/swoop.png")
    assert show.state.assets == {}


def test_strategy_then_scripts(make_show, gemini_reply, analysis_obj):
    strategy_only = {k: analysis_obj[k] for k in ("halftimeRecap", "mainPoints", "keysToWin")}
    scripts = {"team1Script": "Wolf: 17-6!", "team2Script": "Swoop: comeback time."}
    show = make_show(reply=[gemini_reply(strategy_only), gemini_reply(scripts)])
    _run(show.load_data())
    _run(show.generate_strategy())
    assert show.state.analysis.team1_script is None

    state = _run(show.generate_scripts())
    assert state.phase is Phase.ANALYSIS_READY
    assert state.analysis.team1_script == "Wolf: 17-6!"
    assert state.analysis.halftime_recap == analysis_obj["halftimeRecap"]
    assert state.drafts.team2_script == "Swoop: comeback time."


def test_scripts_need_strategy(make_show):
    show = make_show()
    _run(show.load_data())
    state = _run(show.generate_scripts())
    assert state.error == "Generate the strategy before writing scripts."


# =============================================================================
# media
# =============================================================================

def _ready(show):
    _run(show.load_data())
    _run(show.generate_analysis())
    return show


def test_render_requires_analysis(make_show):
    show = make_show(media=FakeMediaClient())
    _run(show.load_data())
    state = _run(show.render_videos())
    assert state.error == "Please generate analysis first."
    assert show.media_client.requests == []


def test_render_without_provider(make_show):
    show = _ready(make_show())
    state = _run(show.render_videos())
    assert state.phase is Phase.MEDIA_FAILED
    assert state.error == "Video generation is not configured."


def test_render_both(make_show):
    media = FakeMediaClient()
    show = _ready(make_show(media=media))
    show.update_drafts(team1_script="Edited wolf script")
    state = _run(show.render_videos())

    assert state.phase is Phase.MEDIA_READY
    assert [o.ok for o in state.media] == [True, True]
    assert media.requests[0].script == "Edited wolf script"
    assert media.requests[1].script.startswith("Swoop here!")
    assert media.requests[0].label == "Kansas City Chiefs mascot"
    assert len(show.store) == 2


def test_render_partial_keeps_successful_side(make_show):
    show = _ready(make_show(media=FakeMediaClient(fail={"team2"})))
    state = _run(show.render_videos())

    assert state.phase is Phase.MEDIA_PARTIAL
    assert state.error is None
    assert state.media[0].ok
    assert state.media_errors == {
        "team2": "Philadelphia Eagles mascot: Video generation failed: Unknown error"
    }


def test_render_both_failed(make_show):
    show = _ready(make_show(media=FakeMediaClient(fail={"team1", "team2"})))
    state = _run(show.render_videos())
    assert state.phase is Phase.MEDIA_FAILED
    assert state.error == "Video generation failed for both teams."
    assert set(state.media_errors) == {"team1", "team2"}


def test_rerender_releases_previous_handles(make_show):
    show = _ready(make_show(media=FakeMediaClient()))
    _run(show.render_videos())
    old = [o.handle.media_id for o in show.state.media]
    _run(show.render_videos())
    assert all(mid not in show.store for mid in old)
    assert len(show.store) == 2

    show.reset_media()
    assert show.state.media == []
    assert len(show.store) == 0


def test_overlapping_render_is_ignored(make_show):
    media = FakeMediaClient()
    show = _ready(make_show(media=media))

    async def both():
        return await asyncio.gather(show.render_videos(), show.render_videos())

    _run(both())
    assert len(media.requests) == 2
    assert show.state.phase is Phase.MEDIA_READY
    assert len(show.store) == 2
    assert all(o.handle.media_id in show.store for o in show.state.media)


def test_broadcast_script(make_show):
    show = make_show()
    assert show.broadcast_script() is None
    _ready(show)
    assert "Kansas City Chiefs 17, Philadelphia Eagles 6." in show.broadcast_script()


# =============================================================================
# wizard
# =============================================================================

def test_wizard_gates(make_show):
    show = make_show(media=FakeMediaClient())
    assert show.state.step is WizardStep.ASSETS
    assert show.advance()
    assert show.state.step is WizardStep.DATA

    assert not show.advance()
    assert show.state.error == "Load the game data before continuing."

    _run(show.load_data())
    assert show.advance()
    assert not show.advance()
    assert show.state.error == "Generate the strategy before continuing."

    _run(show.generate_analysis())
    assert show.advance()
    assert show.state.step is WizardStep.SCRIPTS

    show.update_drafts(team2_script="")
    assert not show.advance()
    assert show.state.error == "Both mascot scripts are required before rendering."

    show.update_drafts(team2_script="Swoop is back")
    assert show.advance()
    assert not show.advance()
    assert show.state.error == "Render at least one video before viewing results."

    _run(show.render_videos())
    assert show.advance()
    assert show.state.step is WizardStep.RESULTS
    assert not show.advance()


def test_back_keeps_work(make_show):
    show = _ready(make_show())
    show.state.step = WizardStep.SCRIPTS
    show.update_drafts(team1_script="My own words")

    assert show.back()
    assert show.state.step is WizardStep.STRATEGY
    assert show.state.drafts.team1_script == "My own words"
    assert show.state.analysis is not None

    show.state.step = WizardStep.ASSETS
    assert not show.back()


def test_state_to_dict(make_show):
    show = _ready(make_show())
    d = show.state.to_dict()
    assert d["phase"] == "analysis_ready"
    assert d["step"] == "assets"
    assert d["summary"]["team1"]["score"] == 17
    assert d["analysis"]["halftimeScore"] == {"team1": 17, "team2": 6}
    assert d["media"] == []
