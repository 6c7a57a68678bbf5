import asyncio
import json
import logging
import random
from dataclasses import asdict, dataclass, field
from pathlib import Path

from browserforge.headers import HeaderGenerator
from playwright.async_api import BrowserContext, Page, async_playwright

from render_proxy.config import settings
from render_proxy.core.exceptions import SessionNotStartedError

logger = logging.getLogger(__name__)

FINGERPRINT_FILE = "fingerprint.json"

# ---------------------------------------------------------------------------
# Fingerprint data, picked once per profile and then persisted
# ---------------------------------------------------------------------------

WEBGL_RENDERERS = [
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce GTX 1080 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce RTX 3060 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) UHD Graphics 630 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) Iris(R) Xe Graphics Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (AMD)",
        "ANGLE (AMD, AMD Radeon RX 6700 XT Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
]

# Client hint headers taken over from the generated header set
_CLIENT_HINT_HEADERS = ("sec-ch-ua", "sec-ch-ua-mobile", "sec-ch-ua-platform")

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]


@dataclass
class Fingerprint:
    """Browser identity applied once when the session starts."""

    user_agent: str
    hw_concurrency: int
    device_mem: int
    webgl_vendor: str
    webgl_renderer: str
    color_depth: int
    client_hints: dict[str, str] = field(default_factory=dict)

    @classmethod
    def generate(cls, user_agent: str = "") -> "Fingerprint":
        client_hints: dict[str, str] = {}
        if not user_agent:
            headers = HeaderGenerator().generate(browser="chrome", os="windows")
            user_agent = headers.get("User-Agent") or headers.get("user-agent", "")
            for name, value in headers.items():
                if name.lower() in _CLIENT_HINT_HEADERS:
                    client_hints[name.lower()] = value
        vendor, renderer = random.choice(WEBGL_RENDERERS)
        return cls(
            user_agent=user_agent,
            hw_concurrency=random.choice([4, 8, 12, 16]),
            device_mem=random.choice([4, 8, 16]),
            webgl_vendor=vendor,
            webgl_renderer=renderer,
            color_depth=random.choice([24, 24, 30]),
            client_hints=client_hints,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Fingerprint":
        return cls(
            user_agent=data["user_agent"],
            hw_concurrency=int(data["hw_concurrency"]),
            device_mem=int(data["device_mem"]),
            webgl_vendor=data["webgl_vendor"],
            webgl_renderer=data["webgl_renderer"],
            color_depth=int(data["color_depth"]),
            client_hints=dict(data.get("client_hints") or {}),
        )


def load_or_create_fingerprint(profile_dir: Path, user_agent: str = "") -> Fingerprint:
    """Reuse the fingerprint stored in the profile, or generate and store one.

    A configured user agent always wins over the stored one.
    """
    path = profile_dir / FINGERPRINT_FILE
    if path.exists():
        try:
            fp = Fingerprint.from_dict(json.loads(path.read_text(encoding="utf-8")))
            if user_agent and fp.user_agent != user_agent:
                fp.user_agent = user_agent
                fp.client_hints = {}
            return fp
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable fingerprint file %s: %s", path, e)

    fp = Fingerprint.generate(user_agent)
    path.write_text(json.dumps(asdict(fp), indent=2), encoding="utf-8")
    logger.info("Generated new browser fingerprint in %s", path)
    return fp


def build_stealth_script(fp: Fingerprint, languages: list[str]) -> str:
    """Init script patching the usual headless giveaways with fixed values."""
    langs = json.dumps(languages)
    return f"""
Object.defineProperty(navigator, 'webdriver', {{ get: () => undefined }});
Object.defineProperty(navigator, 'languages', {{ get: () => {langs} }});
Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {fp.hw_concurrency} }});
Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {fp.device_mem} }});
Object.defineProperty(screen, 'colorDepth', {{ get: () => {fp.color_depth} }});
Object.defineProperty(screen, 'pixelDepth', {{ get: () => {fp.color_depth} }});

if (!window.chrome) {{
    window.chrome = {{ runtime: {{}}, loadTimes: function() {{}}, csi: function() {{}} }};
}}

Object.defineProperty(navigator, 'plugins', {{
    get: () => [
        {{ name: 'PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' }},
        {{ name: 'Chrome PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' }},
    ],
}});

const _origQuery = window.navigator.permissions && window.navigator.permissions.query;
if (_origQuery) {{
    window.navigator.permissions.query = (params) =>
        params && params.name === 'notifications'
            ? Promise.resolve({{ state: Notification.permission }})
            : _origQuery.call(window.navigator.permissions, params);
}}

for (const proto of [WebGLRenderingContext.prototype,
                     (window.WebGL2RenderingContext || WebGLRenderingContext).prototype]) {{
    const getParameter = proto.getParameter;
    proto.getParameter = function(p) {{
        if (p === 37445) return {json.dumps(fp.webgl_vendor)};
        if (p === 37446) return {json.dumps(fp.webgl_renderer)};
        return getParameter.call(this, p);
    }};
}}
"""


def _languages_for(locale: str) -> list[str]:
    base = locale.split("-")[0]
    langs = [locale]
    if base != locale:
        langs.append(base)
    if base != "en":
        langs.extend(["en-US", "en"])
    return langs


class BrowserSession:
    """The single persistent browser profile shared by every request.

    Backed by a Chromium persistent context, so cookies and local storage
    live in PROFILE_DIR and survive restarts. Started once from the app
    lifespan, closed once after in-flight requests drained.
    """

    def __init__(
        self,
        profile_dir: str | None = None,
        headless: bool | None = None,
        locale: str | None = None,
        timezone_id: str | None = None,
        user_agent: str | None = None,
    ):
        self.profile_dir = Path(profile_dir or settings.PROFILE_DIR)
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.locale = locale or settings.BROWSER_LOCALE
        self.timezone_id = timezone_id or settings.BROWSER_TIMEZONE
        self.user_agent = settings.BROWSER_USER_AGENT if user_agent is None else user_agent
        self.viewport = {
            "width": settings.BROWSER_VIEWPORT_WIDTH,
            "height": settings.BROWSER_VIEWPORT_HEIGHT,
        }
        self.fingerprint: Fingerprint | None = None
        self._playwright = None
        self._context: BrowserContext | None = None
        self._started = False
        self._connected = False
        self._lock: asyncio.Lock | None = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def started(self) -> bool:
        return self._started

    @property
    def is_alive(self) -> bool:
        return self._context is not None and self._connected

    async def start(self):
        """Launch Chromium on the persistent profile and apply the fingerprint."""
        async with self._get_lock():
            if self.is_alive:
                return
            await self._launch()
            self._started = True

    async def _launch(self):
        self.profile_dir.mkdir(parents=True, exist_ok=True)
        self.fingerprint = load_or_create_fingerprint(self.profile_dir, self.user_agent)
        fp = self.fingerprint

        if self._playwright is None:
            self._playwright = await async_playwright().start()

        self._context = await self._playwright.chromium.launch_persistent_context(
            user_data_dir=str(self.profile_dir),
            headless=self.headless,
            args=CHROMIUM_ARGS,
            user_agent=fp.user_agent or None,
            locale=self.locale,
            timezone_id=self.timezone_id,
            viewport=self.viewport,
            color_scheme="light",
            java_script_enabled=True,
            extra_http_headers=fp.client_hints or None,
        )
        self._context.on("close", self._on_context_closed)
        self._connected = True

        await self._context.add_init_script(
            build_stealth_script(fp, _languages_for(self.locale))
        )
        logger.info(
            "Browser session started (profile=%s, locale=%s, timezone=%s)",
            self.profile_dir,
            self.locale,
            self.timezone_id,
        )

    def _on_context_closed(self, *_):
        self._connected = False

    async def new_page(self) -> Page:
        """Open a fresh tab in the shared context.

        Relaunches the context on the same profile if Chromium died.
        """
        if not self._started:
            raise SessionNotStartedError("Browser session is not started")

        if not self.is_alive:
            async with self._get_lock():
                if not self.is_alive:
                    logger.warning("Browser session context is gone, relaunching")
                    await self._launch()

        return await self._context.new_page()

    async def close(self):
        """Close the context and stop Playwright."""
        async with self._get_lock():
            if self._context is not None:
                try:
                    await self._context.close()
                except Exception as e:
                    logger.warning("Error closing browser context: %s", e)
                self._context = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning("Error stopping Playwright: %s", e)
                self._playwright = None
            self._connected = False
            self._started = False
        logger.info("Browser session closed")


# Process-wide session instance
browser_session = BrowserSession()
