"""Error taxonomy for the render and submit pipelines.

Every error carries the HTTP status the public endpoints answer with, so
routes can translate a pipeline failure without knowing where it came from.
"""


class RenderProxyError(Exception):
    """Base class for all pipeline failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(RenderProxyError):
    """Malformed or missing input, rejected before any resource is taken."""

    status_code = 400

    def __init__(self, message: str, param: str | None = None):
        super().__init__(message)
        self.param = param


class NavigationFailedError(RenderProxyError):
    """Target unreachable, navigation timed out, or no response object."""

    status_code = 502


class ChallengeDetectedError(RenderProxyError):
    """Anti-bot interstitial still present after the retry schedule."""

    status_code = 403


class NoBodyError(RenderProxyError):
    """Raw mode: the primary response carried no body."""

    status_code = 204


class ExtractionError(RenderProxyError):
    """Body or HTML could not be read after a successful navigation."""

    status_code = 500


class RenderError(RenderProxyError):
    """Unexpected failure inside a pipeline."""

    status_code = 500


class OriginFailureError(RenderProxyError):
    """Submit only: the origin answered with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(
            message or f"Origin responded with status {status_code}",
            status_code=status_code,
        )


class AdmissionTimeoutError(RenderProxyError):
    """No admission slot became free within the configured wait."""

    status_code = 503


class GateClosedError(RenderProxyError):
    """The admission gate no longer accepts work (shutdown in progress)."""

    status_code = 503


class SessionNotStartedError(RenderProxyError):
    """The shared browser session is not running."""

    status_code = 503
