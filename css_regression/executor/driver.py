"""Browser driver capabilities used by the engine, and a Playwright implementation.

The engine only depends on the three Protocols below. Tests drive it with
mocks; the CLI drives it with PlaywrightDriver.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from playwright.sync_api import Browser, ElementHandle as PlaywrightHandle, Page, Playwright, sync_playwright

logger = logging.getLogger(__name__)


@runtime_checkable
class ElementHandle(Protocol):
    @property
    def element_id(self) -> str: ...

    def size(self) -> tuple[int, int]: ...

    def location(self) -> tuple[int, int]: ...

    def css_value(self, prop: str) -> str: ...


class ElementLocator(Protocol):
    def find_elements(self, selector: str) -> Sequence[ElementHandle]: ...

    def window_size(self) -> tuple[int, int]: ...


class ScreenshotSaver(Protocol):
    def capture_screenshot(self, target: Optional[ElementHandle] = None) -> bytes:
        """PNG bytes of the element, or of the full page when target is None."""
        ...


class ScriptExecutor(Protocol):
    def execute_script(self, script: str, args: list[Any]) -> Any: ...


class BrowserDriver(ElementLocator, ScreenshotSaver, ScriptExecutor, Protocol):
    """Everything the regression engine needs from a browser session."""


_ASSIGN_ID_JS = """(el, candidate) => {
  if (!el.dataset.cssRegressionId) { el.dataset.cssRegressionId = candidate; }
  return el.dataset.cssRegressionId;
}"""

_PAGE_LOCATION_JS = """el => {
  const r = el.getBoundingClientRect();
  return [Math.round(r.left + window.scrollX), Math.round(r.top + window.scrollY)];
}"""

_CSS_VALUE_JS = "(el, prop) => window.getComputedStyle(el).getPropertyValue(prop)"


class PlaywrightElement:
    """ElementHandle backed by a Playwright element handle."""

    def __init__(self, handle: PlaywrightHandle):
        self.handle = handle
        self._element_id: str | None = None

    @property
    def element_id(self) -> str:
        # Playwright handles have no stable identity, so tag the DOM node once
        if self._element_id is None:
            self._element_id = self.handle.evaluate(_ASSIGN_ID_JS, uuid.uuid4().hex[:12])
        return self._element_id

    def size(self) -> tuple[int, int]:
        box = self.handle.bounding_box()
        if not box:
            return (0, 0)
        return (round(box["width"]), round(box["height"]))

    def location(self) -> tuple[int, int]:
        x, y = self.handle.evaluate(_PAGE_LOCATION_JS)
        return (int(x), int(y))

    def css_value(self, prop: str) -> str:
        return self.handle.evaluate(_CSS_VALUE_JS, prop)


class PlaywrightDriver:
    """BrowserDriver over a synchronous Playwright page."""

    def __init__(self, page: Page):
        self.page = page

    def find_elements(self, selector: str) -> list[PlaywrightElement]:
        return [PlaywrightElement(h) for h in self.page.query_selector_all(selector)]

    def window_size(self) -> tuple[int, int]:
        viewport = self.page.viewport_size
        if viewport:
            return (viewport["width"], viewport["height"])
        width, height = self.page.evaluate("() => [window.innerWidth, window.innerHeight]")
        return (int(width), int(height))

    def set_window_size(self, width: int, height: int) -> None:
        self.page.set_viewport_size({"width": width, "height": height})

    def capture_screenshot(self, target: Optional[ElementHandle] = None) -> bytes:
        if target is None:
            return self.page.screenshot(full_page=True, type="png")
        handle = target.handle if isinstance(target, PlaywrightElement) else target
        handle.scroll_into_view_if_needed()
        return handle.screenshot(type="png")

    def execute_script(self, script: str, args: list[Any]) -> Any:
        unwrapped = [a.handle if isinstance(a, PlaywrightElement) else a for a in args]
        return self.page.evaluate(script, unwrapped)

    def goto(self, url: str, wait_until: str = "load") -> None:
        logger.debug("Navigating to: %s (wait_until=%s)", url, wait_until)
        self.page.goto(url, wait_until=wait_until)


class BrowserSession:
    """Owns the Playwright browser used by the CLI runner."""

    def __init__(self, headless: bool = True, timeout_ms: int = 30000):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self.driver: PlaywrightDriver | None = None

    def start(self) -> PlaywrightDriver:
        logger.info("Starting Playwright browser (headless=%s)", self.headless)
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless)
        page = self._browser.new_page(device_scale_factor=1)
        page.set_default_timeout(self.timeout_ms)
        self.driver = PlaywrightDriver(page)
        return self.driver

    def close(self) -> None:
        if self._browser:
            try:
                self._browser.close()
            except Exception as e:
                logger.warning("Error closing browser: %s", e)
        if self._playwright:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.warning("Error stopping Playwright: %s", e)
        self._browser = None
        self._playwright = None
        self.driver = None

    def __enter__(self) -> PlaywrightDriver:
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()
