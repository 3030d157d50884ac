"""Pytest configuration and shared fixtures."""

import io
from pathlib import Path

import pytest
from PIL import Image

from css_regression.models.config import RegressionConfig, ViewportConfig
from css_regression.models.results import RunContext
from css_regression.paths import PathResolver

EPOCH = 1700000000

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


# ============================================================================
# Image Helpers
# ============================================================================


def make_png(size=(20, 20), color=WHITE, pixels=None) -> bytes:
    """Create a PNG with a solid background and optional individual pixels."""
    img = Image.new("RGBA", size, color)
    for xy, pixel_color in (pixels or {}).items():
        img.putpixel(xy, pixel_color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def block(n=5, color=BLACK, row=0) -> dict:
    """n pixels of color along one row."""
    return {(x, row): color for x in range(n)}


@pytest.fixture
def png():
    """Fixture that provides the make_png function."""
    return make_png


@pytest.fixture
def pixel_block():
    """Fixture that provides the block function."""
    return block


@pytest.fixture
def epoch() -> int:
    return EPOCH


# ============================================================================
# Driver Fakes
# ============================================================================


class FakeElement:
    def __init__(self, element_id, visibility="visible", size=(20, 20), location=(0, 0)):
        self.element_id = element_id
        self.visibility = visibility
        self._size = size
        self._location = location

    def size(self):
        return self._size

    def location(self):
        return self._location

    def css_value(self, prop):
        return self.visibility if prop == "visibility" else ""


class FakeDriver:
    """In-memory browser driver: selectors map to FakeElements, screenshots are canned bytes."""

    def __init__(self, window=(1280, 800)):
        self.elements: dict[str, list[FakeElement]] = {}
        self.screenshots: dict[str, bytes] = {}
        self.screenshot = make_png()
        self.page_screenshot = make_png((100, 100))
        self.window = window
        self.scripts: list[tuple] = []
        self.visited: list[str] = []

    def add(self, selector, *elements):
        self.elements.setdefault(selector, []).extend(elements)
        return elements[0] if elements else None

    def find_elements(self, selector):
        return list(self.elements.get(selector, []))

    def window_size(self):
        return self.window

    def set_window_size(self, width, height):
        self.window = (width, height)

    def capture_screenshot(self, target=None):
        if target is None:
            return self.page_screenshot
        return self.screenshots.get(target.element_id, self.screenshot)

    def execute_script(self, script, args):
        self.scripts.append((script, args))
        element, value = args
        element.visibility = value

    def goto(self, url, wait_until="load"):
        self.visited.append(url)


@pytest.fixture
def element():
    """Fixture that provides the FakeElement class."""
    return FakeElement


@pytest.fixture
def make_driver():
    """Fixture that provides the FakeDriver class."""
    return FakeDriver


@pytest.fixture
def driver() -> FakeDriver:
    d = FakeDriver()
    d.add("body", FakeElement("body"))
    return d


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def regression_config(tmp_path: Path) -> RegressionConfig:
    """Config rooted in a temporary project directory."""
    return RegressionConfig(
        reference_image_directory="tests/_data/reference",
        fail_image_directory="tests/_output/fail",
        output_directory="tests/_output",
        project_root=str(tmp_path),
        viewports=[ViewportConfig(width=1280, height=800, name="desktop")],
    )


@pytest.fixture
def run_context(regression_config: RegressionConfig) -> RunContext:
    return RunContext.from_config(regression_config, init_epoch=EPOCH)


@pytest.fixture
def resolver(run_context: RunContext) -> PathResolver:
    return PathResolver(run_context)
