"""Exception types raised by the regression engine."""

from __future__ import annotations


class CssRegressionError(Exception):
    """Base class for every error raised by css_regression."""


class ConfigurationError(CssRegressionError):
    """Missing or invalid configuration. Aborts suite initialization."""


class ElementNotFound(CssRegressionError):
    def __init__(self, selector: str):
        super().__init__(f'No element found for selector "{selector}"')
        self.selector = selector


class AmbiguousSelector(CssRegressionError):
    def __init__(self, selector: str, count: int):
        super().__init__(
            f'Multiple elements ({count}) found for selector "{selector}" but need exactly one element'
        )
        self.selector = selector
        self.count = count


class ImageDecodeError(CssRegressionError):
    """A reference or candidate image could not be read."""


class ElementOutsideScreenshot(CssRegressionError):
    """The element box does not overlap the captured screenshot."""

    def __init__(self, location, size, screenshot_size):
        width, height = screenshot_size
        super().__init__(
            f"Element box at {location} with size {size} lies outside the {width}x{height} screenshot"
        )
        self.location = location
        self.size = size


class PathEscapesRootError(CssRegressionError):
    def __init__(self, path, root):
        super().__init__(f'Path "{path}" is outside of the project root "{root}"')
        self.path = path
        self.root = root


class ReferenceMissing(CssRegressionError):
    """No reference image existed; the captured image became the new baseline.

    Not a failure: the check is incomplete until a later run compares against
    the stored baseline.
    """

    def __init__(self, reference_path):
        super().__init__(
            f"Reference image {reference_path} did not exist. "
            "The captured image has been stored as the new reference."
        )
        self.reference_path = reference_path


class VisualMismatchError(CssRegressionError, AssertionError):
    """The captured image differs from its reference beyond tolerance."""
