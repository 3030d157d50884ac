"""Runs one screenshot check against its reference image."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Callable, Optional

from css_regression.errors import (
    AmbiguousSelector,
    ElementNotFound,
    ReferenceMissing,
    VisualMismatchError,
)
from css_regression.executor.driver import BrowserDriver, ElementHandle
from css_regression.executor.image_comparator import ImageComparator, crop_to_box, to_png_bytes
from css_regression.models.results import (
    CheckState,
    Classification,
    ComparisonResult,
    FailureRecord,
    ImageRef,
    RunContext,
    Verdict,
)
from css_regression.paths import PathResolver, window_size_string

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = "body"


def _read_base64(path: Path | None) -> str:
    if path is None or not path.exists():
        return ""
    return base64.b64encode(path.read_bytes()).decode()


class RegressionEngine:
    """Captures an element, bootstraps or compares its reference and writes artifacts.

    Checks run one at a time: capture -> bootstrap-or-compare -> artifacts ->
    temp cleanup. Checks that create a baseline or fail are reported to
    ``on_check_complete`` as FailureRecords.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        context: RunContext,
        resolver: PathResolver | None = None,
        comparator: ImageComparator | None = None,
        on_check_complete: Optional[Callable[[FailureRecord], None]] = None,
    ):
        self.driver = driver
        self.context = context
        self.resolver = resolver or PathResolver(context)
        self.comparator = comparator or ImageComparator(
            fuzz=context.fuzz, max_difference=context.max_difference
        )
        self.on_check_complete = on_check_complete

    def check(
        self,
        identifier: str,
        selector: str | None = None,
        max_difference: float | None = None,
        viewport_size: str | None = None,
        fuzz: float | None = None,
    ) -> Verdict:
        """Run one check and return its verdict. Failures are returned, not raised."""
        selector = selector or DEFAULT_SELECTOR
        window_size = window_size_string(*self.driver.window_size())
        image_ref = ImageRef(identifier=identifier, viewport_size=viewport_size or window_size)
        temp_path = self.resolver.temp_image_path(image_ref.identifier, image_ref.viewport_size)

        try:
            candidate = self._capture(selector, temp_path)
            reference_path = self.resolver.reference_image_path(
                image_ref.identifier, image_ref.viewport_size
            )
            if not reference_path.exists():
                verdict = self._bootstrap_reference(image_ref, temp_path, reference_path)
            else:
                verdict = self._compare(
                    image_ref,
                    candidate,
                    reference_path,
                    fuzz=self.context.fuzz if fuzz is None else fuzz,
                    max_difference=self.context.max_difference if max_difference is None else max_difference,
                )
        finally:
            self._remove_temp_image(temp_path)

        logger.info("Check %s [%s]: %s", identifier, image_ref.viewport_size, verdict.state.value)
        if verdict.state in (CheckState.INCOMPLETE, CheckState.FAILED):
            self._emit(verdict, window_size)
        return verdict

    def assert_no_difference(
        self,
        identifier: str,
        selector: str | None = None,
        max_difference: float | None = None,
        viewport_size: str | None = None,
        fuzz: float | None = None,
    ) -> Verdict:
        """Like check(), but raises for new baselines and failing comparisons."""
        verdict = self.check(identifier, selector, max_difference, viewport_size, fuzz)
        if verdict.state == CheckState.INCOMPLETE:
            raise ReferenceMissing(verdict.reference_path)
        if verdict.state == CheckState.FAILED:
            raise VisualMismatchError(verdict.message)
        return verdict

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def _find_single_element(self, selector: str) -> ElementHandle:
        elements = self.driver.find_elements(selector)
        if not elements:
            raise ElementNotFound(selector)
        if len(elements) > 1:
            raise AmbiguousSelector(selector, len(elements))
        return elements[0]

    def _capture(self, selector: str, temp_path: Path) -> bytes:
        element = self._find_single_element(selector)
        if self.context.crop_to_element:
            page_shot = self.driver.capture_screenshot(None)
            png = to_png_bytes(crop_to_box(page_shot, element.location(), element.size()))
        else:
            png = to_png_bytes(self.driver.capture_screenshot(element))

        self.resolver.ensure_directory(temp_path.parent)
        temp_path.write_bytes(png)
        logger.debug("Captured %s to %s", selector, temp_path)
        return png

    # ------------------------------------------------------------------
    # Bootstrap / compare
    # ------------------------------------------------------------------

    def _bootstrap_reference(self, image_ref: ImageRef, temp_path: Path, reference_path: Path) -> Verdict:
        self.resolver.ensure_directory(reference_path.parent)
        # "xb" refuses to replace a reference that appeared in the meantime
        with open(reference_path, "xb") as f:
            f.write(temp_path.read_bytes())
        message = (
            f"Reference image {reference_path} does not exist. "
            "Check is incomplete; the captured image is now the reference."
        )
        logger.info(message)
        return Verdict(
            image_ref=image_ref,
            state=CheckState.INCOMPLETE,
            reference_path=reference_path,
            message=message,
        )

    def _compare(
        self,
        image_ref: ImageRef,
        candidate: bytes,
        reference_path: Path,
        fuzz: float,
        max_difference: float,
    ) -> Verdict:
        result = self.comparator.compare(candidate, reference_path, fuzz, max_difference)
        comments = [
            f"See an absolute difference of {result.absolute_difference:f} with a fuzz value of {fuzz:f}",
            f"See a mean square error difference of {result.normalized_difference:f}",
        ]

        if result.classification == Classification.IDENTICAL:
            for c in comments:
                logger.info(c)
            return Verdict(
                image_ref=image_ref,
                state=CheckState.PASSED,
                reference_path=reference_path,
                comparison=result,
                message="No difference to the reference image",
                comments=comments,
            )

        if result.classification == Classification.WITHIN_TOLERANCE:
            comments.append(
                f"Detected difference {result.normalized_difference:f} is lower than max allowed "
                f"difference of {max_difference:f} but absolute difference has been detected"
            )
        else:
            comments.append(
                f"Detected difference {result.normalized_difference:f} is higher than max allowed "
                f"difference of {max_difference:f}"
            )
        for c in comments:
            logger.info(c)

        fail_path, diff_path = self._write_artifacts(image_ref, candidate, result)

        if result.classification == Classification.WITHIN_TOLERANCE:
            return Verdict(
                image_ref=image_ref,
                state=CheckState.TOLERATED,
                reference_path=reference_path,
                comparison=result,
                fail_path=fail_path,
                diff_path=diff_path,
                message=f"Difference within tolerance, see diff image {diff_path}",
                comments=comments,
            )
        return Verdict(
            image_ref=image_ref,
            state=CheckState.FAILED,
            reference_path=reference_path,
            comparison=result,
            fail_path=fail_path,
            diff_path=diff_path,
            message=f"Reference image {reference_path} is different from current image {fail_path}",
            comments=comments,
        )

    def _write_artifacts(
        self, image_ref: ImageRef, candidate: bytes, result: ComparisonResult
    ) -> tuple[Path, Path]:
        fail_path = self.resolver.fail_image_path(image_ref.identifier, image_ref.viewport_size, "fail")
        diff_path = self.resolver.fail_image_path(image_ref.identifier, image_ref.viewport_size, "diff")
        self.resolver.ensure_directory(fail_path.parent)

        fail_path.write_bytes(candidate)
        result.diff_image.save(diff_path, format="PNG")
        logger.debug("Wrote fail image %s and diff image %s", fail_path, diff_path)
        return fail_path, diff_path

    # ------------------------------------------------------------------
    # Reporting / cleanup
    # ------------------------------------------------------------------

    def build_record(self, verdict: Verdict, window_size: str = "") -> FailureRecord:
        return FailureRecord(
            identifier=verdict.image_ref.identifier,
            viewport_size=verdict.image_ref.viewport_size,
            window_size=window_size or verdict.image_ref.viewport_size,
            reference_image_path=self.resolver.relative_reference_path(verdict.reference_path),
            fail_image=_read_base64(verdict.fail_path),
            diff_image=_read_base64(verdict.diff_path),
            reference_image=_read_base64(verdict.reference_path),
        )

    def _emit(self, verdict: Verdict, window_size: str) -> None:
        if self.on_check_complete is None:
            return
        self.on_check_complete(self.build_record(verdict, window_size))

    def _remove_temp_image(self, temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not remove temp image %s: %s", temp_path, e)
