from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings

_GOTO_WAIT_CHOICES = ("networkidle", "load", "domcontentloaded")


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Render Proxy"
    APP_VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Admission
    MAX_CONCURRENCY: int = 3
    ADMISSION_TIMEOUT: float = 0  # seconds, 0 = wait forever
    SHUTDOWN_DRAIN_TIMEOUT: float = 30.0  # seconds

    # Navigation
    NAV_TIMEOUT: int = 30000  # ms
    GOTO_WAIT: str = "networkidle"

    # Browser session
    BROWSER_HEADLESS: bool = True
    PROFILE_DIR: str = "./browser-profile"
    BROWSER_LOCALE: str = "tr-TR"
    BROWSER_TIMEZONE: str = "Europe/Istanbul"
    BROWSER_USER_AGENT: str = ""  # empty = generate once with BrowserForge
    BROWSER_VIEWPORT_WIDTH: int = 1920
    BROWSER_VIEWPORT_HEIGHT: int = 1080

    # Forwarded request headers
    DEFAULT_ACCEPT_LANGUAGE: str = "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7"
    DEFAULT_REFERER: str = "https://www.google.com/"
    FORWARD_USER_AGENT: bool = False

    # Challenge handling: waits before the 2nd and 3rd HTML read
    CHALLENGE_RETRY_DELAYS: List[float] = [3.0, 6.0]  # seconds

    # Submit
    SUBMIT_DEFAULT_URL: str = ""
    SUBMIT_DEFAULT_REFERER_PATH: str = "/"
    SUBMIT_REQUIRED_FIELDS: List[str] = ["id", "type"]
    SUBMIT_SETTLE_DELAY: int = 3000  # ms

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("MAX_CONCURRENCY")
    @classmethod
    def _check_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_CONCURRENCY must be >= 1")
        return v

    @field_validator("GOTO_WAIT")
    @classmethod
    def _check_goto_wait(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in _GOTO_WAIT_CHOICES:
            raise ValueError(f"GOTO_WAIT must be one of {', '.join(_GOTO_WAIT_CHOICES)}")
        return v

    @field_validator("CHALLENGE_RETRY_DELAYS")
    @classmethod
    def _check_delays(cls, v: List[float]) -> List[float]:
        if any(d < 0 for d in v):
            raise ValueError("CHALLENGE_RETRY_DELAYS must not contain negative values")
        return v


settings = Settings()
