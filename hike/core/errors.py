# hike/core/errors.py
from __future__ import annotations

import re
from typing import Optional


class HikeError(Exception):
    """Base for every failure the service turns into a user-facing message."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        return self.message


class ConnectivityError(HikeError):
    """Feed or provider endpoint unreachable (DNS, connect, read timeout, bad body)."""

    status_code = 502
    kind = "connectivity"


class HttpStatusError(HikeError):
    status_code = 502
    kind = "http_status"

    def __init__(self, message: str, status: int, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body

    @property
    def user_message(self) -> str:
        return f"{self.message} (HTTP {self.status})"


class NormalizationError(HikeError):
    """Feed payload does not have the shape we project from."""

    status_code = 502
    kind = "normalization"


class MissingTeamError(NormalizationError):
    kind = "missing_team"

    def __init__(self, side: str, detail: str = ""):
        msg = f"Could not resolve the {side} team from the game feed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.side = side


class ParseError(HikeError):
    status_code = 502
    kind = "parse"

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class AnalysisParseError(ParseError):
    """Model text did not contain a decodable JSON object."""


class EmptyResponseError(ParseError):
    kind = "empty_response"


class SchemaMismatchError(ParseError):
    kind = "schema_mismatch"


class ConfigurationError(HikeError):
    status_code = 503
    kind = "configuration"


class QuotaOrEntitlementError(HikeError):
    status_code = 402
    kind = "quota"


class MediaJobError(HikeError):
    status_code = 502
    kind = "media_job"


class MediaTimeoutError(MediaJobError, TimeoutError):
    status_code = 504
    kind = "media_timeout"


# ----------------------------------------------------------------------
# Provider error classification
# ----------------------------------------------------------------------
# Providers only report plan/billing restrictions in free text, so the match
# lives here and nowhere else.
_BILLING_PATTERN = re.compile(
    r"billed account|billing|requires? (?:a )?paid|upgrade your plan|"
    r"insufficient[_ ]credits?|quota|resource[_ ]exhausted",
    re.IGNORECASE,
)

BILLING_REMEDIATION = (
    "Video generation requires a billed account. Select an API key from a "
    "project with billing enabled and try again."
)

ANALYSIS_QUOTA_REMEDIATION = (
    "The analysis service refused the request for quota or billing reasons. "
    "Wait for the quota to reset or select an API key from a project with "
    "billing enabled, then try again."
)

_REMEDIATION = {
    "video": BILLING_REMEDIATION,
    "analysis": ANALYSIS_QUOTA_REMEDIATION,
}


def classify_provider_error(text: Optional[str], service: str = "video") -> Optional[QuotaOrEntitlementError]:
    """
    Return a QuotaOrEntitlementError when `text` looks like a billing/quota
    refusal, otherwise None. `service` ("video" or "analysis") picks the
    remediation message.
    """
    if service not in _REMEDIATION:
        raise ValueError(f"unknown service {service!r}")
    if text and _BILLING_PATTERN.search(text):
        return QuotaOrEntitlementError(_REMEDIATION[service])
    return None


def user_message(exc: BaseException) -> str:
    """Render any exception as the one line shown to the user."""
    if isinstance(exc, HikeError):
        return exc.user_message
    text = str(exc).strip()
    return text or "An unexpected error occurred during production."
