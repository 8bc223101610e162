"""
Gemini API Client

Thin async wrapper around the Gemini `generateContent` REST endpoint for the
halftime analysis calls, plus the helpers that turn model text into
structured results.

One request per call: failures are reported, never retried.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import httpx

from hike.core.credentials import CredentialProvider
from hike.core.errors import (
    AnalysisParseError,
    ConnectivityError,
    EmptyResponseError,
    HttpStatusError,
    SchemaMismatchError,
    classify_provider_error,
)
from hike.models.types import AnalysisResult, Source, TeamKeys
from hike.services.prompt_builder import Prompt

logger = logging.getLogger("hike.gemini")

MAX_SOURCES = 3


@dataclass
class GenerationResult:
    """Decoded JSON object plus whatever the envelope carried alongside it."""
    data: Dict[str, Any]
    text: str
    sources: List[Source]
    model: str
    latency_ms: float


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

def _top_level_starts(text: str) -> Iterator[int]:
    """Offsets of every `{` that opens a top-level brace span (strings inside spans skipped)."""
    depth = 0
    in_string = escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == "{":
            if depth == 0:
                yield i
            depth += 1
        elif depth and ch == '"':
            in_string = True
        elif depth and ch == "}":
            depth -= 1


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Return the first top-level JSON object in `text`.

    Prose, markdown fences and trailing commentary around the object are
    ignored. Objects nested inside a span that fails to decode are never
    returned on their own. Raises AnalysisParseError (keeping the raw text)
    if no top-level span decodes.
    """
    if not text or not text.strip():
        raise EmptyResponseError("The analysis service returned an empty response.", text)

    decoder = json.JSONDecoder()
    for pos in _top_level_starts(text):
        try:
            obj, _ = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    raise AnalysisParseError("The analysis response could not be read as JSON.", text)


def extract_sources(payload: Mapping[str, Any], limit: int = MAX_SOURCES) -> List[Source]:
    """Web grounding chunks -> [(title, uri)], deduplicated by uri, capped at `limit`."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return []
    meta = (candidates[0] or {}).get("groundingMetadata") or {}
    out: List[Source] = []
    seen = set()
    for chunk in meta.get("groundingChunks") or []:
        web = (chunk or {}).get("web") or {}
        uri = web.get("uri")
        if not uri or uri in seen:
            continue
        seen.add(uri)
        out.append(Source(title=web.get("title") or uri, uri=uri))
        if len(out) >= limit:
            break
    return out


def _response_text(payload: Mapping[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        reason = (payload.get("promptFeedback") or {}).get("blockReason")
        msg = "The analysis service returned no candidates."
        if reason:
            msg = f"The analysis request was blocked ({reason})."
        raise EmptyResponseError(msg, json.dumps(payload)[:2000])

    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    # skip reasoning parts; answer text only
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict) and not p.get("thought"))
    if not text.strip():
        raise EmptyResponseError("The analysis service returned an empty response.", text)
    return text


def _str_list(v: Any) -> Tuple[str, ...]:
    if isinstance(v, list):
        return tuple(str(x) for x in v if x is not None and str(x).strip())
    if isinstance(v, str) and v.strip():
        return (v,)
    return ()


def _opt_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) and v.strip() else None


def _opt_int(v: Any) -> Optional[int]:
    try:
        return int(v) if v is not None and not isinstance(v, bool) else None
    except (TypeError, ValueError):
        return None


def parse_analysis(
    data: Mapping[str, Any],
    sources: Optional[List[Source]] = None,
    raw_text: Optional[str] = None,
    default_names: Tuple[str, str] = ("Team 1", "Team 2"),
) -> AnalysisResult:
    """
    Validate the decoded object and lift it into an AnalysisResult.

    Only the recap and keys are required. Other fields may be missing or
    mistyped and fall back to empty values.
    """
    recap = data.get("halftimeRecap")
    if not isinstance(recap, str) or not recap.strip():
        raise SchemaMismatchError("The analysis response is missing the halftime recap.", raw_text)
    keys = data.get("keysToWin")
    if not isinstance(keys, Mapping):
        raise SchemaMismatchError("The analysis response is missing the keys to win.", raw_text)

    def _team_keys(slot: str, default_name: str) -> TeamKeys:
        t = keys.get(slot)
        if not isinstance(t, Mapping):
            return TeamKeys(name=default_name)
        return TeamKeys(name=_opt_str(t.get("name")) or default_name, keys=_str_list(t.get("keys")))

    score = data.get("halftimeScore")
    halftime_score = None
    if isinstance(score, Mapping):
        halftime_score = (_opt_int(score.get("team1")), _opt_int(score.get("team2")))

    combined: Dict[str, Tuple[str, str]] = {}
    stats = data.get("combinedStats")
    if isinstance(stats, Mapping):
        for label, pair in stats.items():
            if isinstance(pair, Mapping):
                combined[str(label)] = (str(pair.get("team1", "N/A")), str(pair.get("team2", "N/A")))

    return AnalysisResult(
        halftime_recap=recap.strip(),
        team1_keys=_team_keys("team1", default_names[0]),
        team2_keys=_team_keys("team2", default_names[1]),
        main_points=_str_list(data.get("mainPoints")),
        narration_script=_opt_str(data.get("narrationScript")),
        team1_script=_opt_str(data.get("team1Script")),
        team2_script=_opt_str(data.get("team2Script")),
        halftime_score=halftime_score,
        combined_stats=combined,
        sources=tuple(sources or ()),
        raw_text=raw_text,
    )


def parse_scripts(data: Mapping[str, Any], raw_text: Optional[str] = None) -> Dict[str, Optional[str]]:
    """Scripts-stage output: both mascot scripts required, narration optional."""
    t1, t2 = _opt_str(data.get("team1Script")), _opt_str(data.get("team2Script"))
    if not t1 or not t2:
        raise SchemaMismatchError("The scripts response is missing a mascot script.", raw_text)
    return {"team1Script": t1, "team2Script": t2, "narrationScript": _opt_str(data.get("narrationScript"))}


# =============================================================================
# CLIENT
# =============================================================================

class GeminiClient:
    """
    Async client for Gemini text generation.

    Usage:
        client = GeminiClient(EnvCredentialProvider(["GEMINI_API_KEY"]))
        result = await client.generate_json(build_analysis_prompt(summary))
        analysis = parse_analysis(result.data, result.sources, result.text)
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-3-pro-preview"

    def __init__(
        self,
        credentials: CredentialProvider,
        model: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_url(self, model: Optional[str] = None) -> str:
        return f"{self.BASE_URL}/models/{model or self.model}:generateContent"

    def build_request_body(
        self,
        prompt: Prompt,
        grounding: bool = False,
        temperature: float = 0.0,
    ) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [{"text": prompt.text}]
        for img in prompt.images:
            parts.append({"inline_data": {"mime_type": img.mime_type, "data": img.data}})

        generation_config: Dict[str, Any] = {"temperature": temperature}
        if prompt.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = prompt.response_schema

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
        }
        if grounding:
            body["tools"] = [{"google_search": {}}]
        return body

    async def generate_json(
        self,
        prompt: Prompt,
        grounding: bool = False,
        temperature: float = 0.0,
        model: Optional[str] = None,
    ) -> GenerationResult:
        """
        Send `prompt` and decode the first JSON object of the reply.

        Raises:
            ConfigurationError: no API key available.
            QuotaOrEntitlementError: provider refused on billing/quota grounds.
            ConnectivityError / HttpStatusError: transport or non-2xx.
            EmptyResponseError / AnalysisParseError: nothing decodable came back.
        """
        api_key = self.credentials.request_credential()
        client = await self._get_client()
        body = self.build_request_body(prompt, grounding=grounding, temperature=temperature)
        use_model = model or self.model

        start = time.perf_counter()
        try:
            response = await client.post(
                self._build_url(use_model),
                json=body,
                headers={"x-goog-api-key": api_key},
            )
        except httpx.HTTPError as e:
            logger.warning("gemini request failed: %s", repr(e))
            raise ConnectivityError("Could not reach the analysis service.") from e
        latency_ms = (time.perf_counter() - start) * 1000

        if not response.is_success:
            text = response.text
            logger.error("gemini %s -> %s: %s", use_model, response.status_code, text[:500])
            quota = classify_provider_error(text, service="analysis")
            if quota is not None:
                raise quota
            raise HttpStatusError("Analysis generation failed", response.status_code, text[:2000])

        try:
            payload = response.json()
        except ValueError as e:
            raise ConnectivityError("The analysis service returned a non-JSON envelope.") from e

        text = _response_text(payload)
        data = extract_json_object(text)
        sources = extract_sources(payload)
        logger.info(
            "gemini %s ok in %.0fms (%d chars, %d sources, images=%d)",
            use_model, latency_ms, len(text), len(sources), len(prompt.images),
        )
        return GenerationResult(data=data, text=text, sources=sources, model=use_model, latency_ms=latency_ms)

    async def generate(
        self,
        prompt: Prompt,
        grounding: bool = False,
        temperature: float = 0.0,
        default_names: Tuple[str, str] = ("Team 1", "Team 2"),
    ) -> AnalysisResult:
        result = await self.generate_json(prompt, grounding=grounding, temperature=temperature)
        return parse_analysis(result.data, result.sources, result.text, default_names)
