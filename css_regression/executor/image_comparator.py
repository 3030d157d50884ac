"""Fuzzy image comparison, classification and diff rendering.

Two metrics are computed after the fuzz window has been applied:

* absolute difference: the number of pixels whose color distance exceeds
  the fuzz tolerance (ImageMagick's AE metric).
* normalized difference: the mean squared channel error over every pixel and
  channel, on a percent scale (0..100) and rounded to 2 decimals
  (ImageMagick's MSE metric, times 100).

A result is ``identical`` when no pixel differs at all, regardless of the
normalized score. Otherwise it is ``within_tolerance`` when the normalized
score is strictly below ``max_difference`` and ``failing`` when it is not.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from css_regression.errors import ElementOutsideScreenshot, ImageDecodeError
from css_regression.models.results import Classification, ComparisonResult

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, str, Path, Image.Image]

DEFAULT_FUZZ = 0.3
DEFAULT_MAX_DIFFERENCE = 0.01

DIFF_HIGHLIGHT = (255, 0, 0, 255)
# Share of white blended into the reference underneath the highlights
DIFF_LOWLIGHT = 0.7


def load_image(source: ImageSource) -> Image.Image:
    """Decode an image and normalize it to RGBA without metadata or color profile."""
    try:
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(source))
            img.load()
        else:
            img = Image.open(source)
            img.load()
        rgba = img.convert("RGBA")
    except (OSError, ValueError, SyntaxError) as e:
        raise ImageDecodeError(f"Unable to read image {_describe(source)}: {e}") from e
    # Rebuild from raw pixels so no info/icc_profile/exif survives
    return Image.fromarray(np.asarray(rgba, dtype=np.uint8))


def to_png_bytes(source: ImageSource) -> bytes:
    """Re-encode an image as a metadata-free RGBA PNG."""
    buf = io.BytesIO()
    load_image(source).save(buf, format="PNG")
    return buf.getvalue()


def crop_to_box(source: ImageSource, location: tuple[int, int], size: tuple[int, int]) -> Image.Image:
    """Crop an image to the box at location with size, clamped to the image bounds."""
    img = load_image(source)
    x, y = location
    width, height = size
    left, top = max(0, x), max(0, y)
    right, bottom = min(img.width, x + width), min(img.height, y + height)
    if right <= left or bottom <= top:
        raise ElementOutsideScreenshot(location, size, img.size)
    return img.crop((left, top, right, bottom))


def _describe(source: ImageSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return repr(source)


def _pad(arr: np.ndarray, height: int, width: int) -> np.ndarray:
    if arr.shape[0] == height and arr.shape[1] == width:
        return arr
    out = np.zeros((height, width, 4), dtype=arr.dtype)
    out[: arr.shape[0], : arr.shape[1]] = arr
    return out


class ImageComparator:
    """Compares a captured image against its reference."""

    def __init__(self, fuzz: float = DEFAULT_FUZZ, max_difference: float = DEFAULT_MAX_DIFFERENCE):
        self.fuzz = fuzz
        self.max_difference = max_difference

    def compare(
        self,
        candidate: ImageSource,
        reference: ImageSource,
        fuzz_percent: float | None = None,
        max_difference: float | None = None,
    ) -> ComparisonResult:
        fuzz = self.fuzz if fuzz_percent is None else fuzz_percent
        threshold = self.max_difference if max_difference is None else max_difference

        cand = np.asarray(load_image(candidate), dtype=np.float64) / 255.0
        ref = np.asarray(load_image(reference), dtype=np.float64) / 255.0

        height = max(cand.shape[0], ref.shape[0])
        width = max(cand.shape[1], ref.shape[1])
        overlap = np.zeros((height, width), dtype=bool)
        overlap[: min(cand.shape[0], ref.shape[0]), : min(cand.shape[1], ref.shape[1])] = True
        if cand.shape != ref.shape:
            logger.debug(
                "Image sizes differ: candidate %dx%d, reference %dx%d",
                cand.shape[1], cand.shape[0], ref.shape[1], ref.shape[0],
            )
        cand = _pad(cand, height, width)
        ref = _pad(ref, height, width)

        squared = (cand - ref) ** 2
        # Pixels only one of the images covers differ maximally
        squared[~overlap] = 1.0

        distance = np.sqrt(squared.mean(axis=2))
        differs = distance > (fuzz / 100.0)

        absolute = float(np.count_nonzero(differs))
        mse = float(np.where(differs[..., None], squared, 0.0).mean()) if differs.size else 0.0
        normalized = round(mse * 100.0, 2)

        classification = self.classify(absolute, normalized, threshold)
        diff_image = None
        if classification != Classification.IDENTICAL:
            diff_image = self.render_diff(ref, differs)

        return ComparisonResult(
            absolute_difference=absolute,
            normalized_difference=normalized,
            classification=classification,
            diff_image=diff_image,
        )

    @staticmethod
    def classify(absolute_difference: float, normalized_difference: float, max_difference: float) -> Classification:
        if absolute_difference == 0:
            return Classification.IDENTICAL
        if normalized_difference < max_difference:
            return Classification.WITHIN_TOLERANCE
        return Classification.FAILING

    @staticmethod
    def render_diff(reference: np.ndarray, differs: np.ndarray) -> Image.Image:
        """Faded grayscale reference with every differing pixel painted red."""
        rgb = reference[..., :3]
        gray = rgb @ np.array([0.299, 0.587, 0.114])
        faded = gray * (1.0 - DIFF_LOWLIGHT) + DIFF_LOWLIGHT
        out = np.empty(differs.shape + (4,), dtype=np.uint8)
        out[..., :3] = np.clip(faded * 255.0, 0, 255).astype(np.uint8)[..., None]
        out[..., 3] = 255
        out[differs] = DIFF_HIGHLIGHT
        return Image.fromarray(out)
