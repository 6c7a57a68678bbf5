from dataclasses import dataclass, field
from urllib.parse import urlsplit

_ALLOWED_SCHEMES = ("http", "https")


def normalize_target_url(raw: str | None) -> str | None:
    """Return the absolute target URL, or None if it is missing or invalid.

    Tolerates the path-style form ``/https://example.com/...`` by stripping
    the leading slashes.
    """
    if not raw:
        return None
    url = raw.strip()
    if url.startswith(("/http://", "/https://")):
        url = url.lstrip("/")
    try:
        parts = urlsplit(url)
        # Accessing .port validates it
        parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in _ALLOWED_SCHEMES or not parts.hostname:
        return None
    if not parts.path:
        url = parts._replace(path="/").geturl()
    return url


@dataclass
class ForwardedHeaders:
    """Caller headers passed on to the target."""

    user_agent: str | None = None
    referer: str | None = None
    accept_language: str | None = None

    @classmethod
    def from_mapping(cls, headers) -> "ForwardedHeaders":
        return cls(
            user_agent=headers.get("user-agent"),
            referer=headers.get("referer"),
            accept_language=headers.get("accept-language"),
        )


@dataclass
class RenderResult:
    """What a render produced, ready to be written out as an HTTP response."""

    status_code: int
    body: str | bytes
    media_type: str
    headers: dict[str, str] = field(default_factory=dict)
