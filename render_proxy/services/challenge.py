"""Anti-bot interstitial detection on rendered HTML."""

from enum import Enum

# Markers of the Cloudflare "checking your browser" interstitial
CHALLENGE_MARKERS = (
    "just a moment",
    "cf-browser-verification",
    "__cf_chl_jschl_tk__",
)


class ChallengeState(str, Enum):
    CLEAR = "clear"
    CHALLENGED = "challenged"


def classify(html: str | None) -> ChallengeState:
    """Classify rendered HTML as clear or still behind a challenge.

    Case-insensitive substring scan. An incomplete marker list means the
    occasional false negative, which is accepted.
    """
    if not html:
        return ChallengeState.CLEAR
    lower = html.lower()
    for marker in CHALLENGE_MARKERS:
        if marker in lower:
            return ChallengeState.CHALLENGED
    return ChallengeState.CLEAR


def is_challenged(html: str | None) -> bool:
    return classify(html) is ChallengeState.CHALLENGED
