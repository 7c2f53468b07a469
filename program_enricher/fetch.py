"""
Fetch module for the Program Enricher pipeline.

This module retrieves raw markup for a program page. A direct HTTP GET is
tried first; on a non-success status or transport failure the page is
rendered in a headless Chromium browser instead. When both attempts fail
the fetcher returns empty markup, which callers treat as "no data".
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from program_enricher.utils import EnricherSettings, get_logger


# Module logger
logger = get_logger("fetch")

# Default configuration
DEFAULT_TIMEOUT = 15  # seconds
DEFAULT_MAX_RETRIES = 0  # the browser fallback is the only retry
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_SETTLE_DELAY_MS = 2000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class FetchError(Exception):
    """Raised when a page cannot be retrieved by a fetch strategy."""
    pass


@dataclass
class FetchResult:
    """
    Represents the result of a direct fetch of a single URL.

    Attributes:
        source_url: The original URL that was fetched.
        html_content: Raw HTML content if successful, None otherwise.
        success: Whether the fetch was successful.
        error_message: Error description if fetch failed, None otherwise.
        status_code: HTTP status code if request was made, None otherwise.
    """
    source_url: str
    html_content: Optional[str]
    success: bool
    error_message: Optional[str] = None
    status_code: Optional[int] = None


def create_session(
    max_retries: int = DEFAULT_MAX_RETRIES,
    user_agent: str = DEFAULT_USER_AGENT
) -> requests.Session:
    """
    Create a requests session with desktop browser headers.

    Args:
        max_retries: Transport-level retry attempts. Defaults to 0.
        user_agent: User-Agent header sent with every request.

    Returns:
        Configured requests.Session instance.
    """
    session = requests.Session()

    retry_strategy = Retry(total=max_retries, raise_on_status=False)

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    })

    return session


def validate_url(url: str) -> bool:
    """
    Validate that a URL is well-formed and uses HTTP/HTTPS.

    Args:
        url: URL string to validate.

    Returns:
        True if URL is valid, False otherwise.
    """
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def fetch_single_url(
    url: str,
    session: requests.Session,
    timeout: float = DEFAULT_TIMEOUT
) -> FetchResult:
    """
    Fetch a single URL with a direct GET and return the result.

    Args:
        url: URL to fetch.
        session: Configured requests session.
        timeout: Request timeout in seconds.

    Returns:
        FetchResult containing the fetch outcome.
    """
    logger.debug(f"Fetching URL: {url}")

    if not validate_url(url):
        logger.warning(f"Invalid URL format: {url}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message="Invalid URL format"
        )

    try:
        response = session.get(url, timeout=timeout)

        if 200 <= response.status_code < 300:
            logger.info(f"Successfully fetched {url} ({len(response.text)} bytes)")
            return FetchResult(
                source_url=url,
                html_content=response.text,
                success=True,
                status_code=response.status_code
            )
        else:
            logger.warning(f"HTTP {response.status_code} for {url}")
            return FetchResult(
                source_url=url,
                html_content=None,
                success=False,
                error_message=f"HTTP {response.status_code}",
                status_code=response.status_code
            )

    except requests.exceptions.Timeout:
        logger.warning(f"Timeout fetching {url}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message="Request timeout"
        )

    except requests.exceptions.ConnectionError as e:
        logger.warning(f"Connection error for {url}: {e}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message=f"Connection error: {str(e)}"
        )

    except requests.exceptions.RequestException as e:
        logger.error(f"Request exception for {url}: {e}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message=f"Request failed: {str(e)}"
        )


class BrowserRenderer:
    """
    Renders pages in a headless Chromium browser.

    The browser is launched lazily on the first render and released by
    close(), which is safe to call more than once. Use as a context manager
    to guarantee release on every exit path.
    """

    def __init__(
        self,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_delay_ms = settle_delay_ms
        self.user_agent = user_agent
        self._playwright = None
        self._browser = None

    def __enter__(self) -> "BrowserRenderer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    def _ensure_browser(self):
        if self._browser is None:
            logger.debug("Launching headless browser")
            self._playwright = sync_playwright().start()
            try:
                self._browser = self._playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
            except Exception:
                self._playwright.stop()
                self._playwright = None
                raise
        return self._browser

    def render(self, url: str) -> str:
        """
        Navigate to a URL and capture the rendered markup.

        Waits for network idle up to the navigation timeout, then for the
        settle delay so client-side rendering can finish.

        Args:
            url: Page URL.

        Returns:
            Rendered HTML.

        Raises:
            FetchError: If the browser cannot be launched or the page fails
                to load.
        """
        try:
            browser = self._ensure_browser()
            page = browser.new_page(user_agent=self.user_agent)
            try:
                page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                page.wait_for_timeout(self.settle_delay_ms)
                return page.content()
            finally:
                page.close()
        except PlaywrightError as e:
            raise FetchError(f"Browser render failed for {url}: {e}") from e

    def close(self) -> None:
        """Close the browser and stop playwright."""
        browser, self._browser = self._browser, None
        pw, self._playwright = self._playwright, None
        try:
            if browser is not None:
                browser.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser: {e}")
        finally:
            if pw is not None:
                pw.stop()


class ContentFetcher:
    """
    Two-tier page fetcher: direct GET first, headless browser second.

    Owns one requests session and one lazily launched browser for its
    lifetime. Use as a context manager so both are released.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        renderer: Optional[BrowserRenderer] = None
    ):
        self.timeout = timeout
        self.session = session if session is not None else create_session()
        self.renderer = renderer if renderer is not None else BrowserRenderer()

    @classmethod
    def from_settings(cls, settings: EnricherSettings) -> "ContentFetcher":
        return cls(
            timeout=settings.request_timeout,
            renderer=BrowserRenderer(
                navigation_timeout_ms=settings.navigation_timeout_ms,
                settle_delay_ms=settings.settle_delay_ms,
            ),
        )

    def __enter__(self) -> "ContentFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch(self, url: str) -> str:
        """
        Retrieve markup for a URL.

        Args:
            url: Page URL.

        Returns:
            Page markup, or an empty string if both strategies failed.
        """
        result = fetch_single_url(url, self.session, self.timeout)
        if result.success and result.html_content:
            return result.html_content

        if not validate_url(url):
            return ""

        logger.info(f"Direct fetch failed for {url} ({result.error_message}), trying headless browser")
        try:
            html = self.renderer.render(url)
        except FetchError as e:
            logger.warning(str(e))
            return ""

        logger.info(f"Rendered {url} in headless browser ({len(html)} bytes)")
        return html

    def close(self) -> None:
        try:
            self.renderer.close()
        finally:
            self.session.close()
