"""Suite orchestrator. Owns the run context and exposes the host lifecycle.

A host test runner calls, in order:

    on_suite_start(config)       once, before any check
    on_check_complete(record)    for each new baseline or failed check
    on_run_end()                 once; returns the report path or None

The engine calls on_check_complete itself, so hosts that use ``engine``
directly only have to call the first and last method.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from css_regression.errors import CssRegressionError
from css_regression.executor.driver import BrowserDriver
from css_regression.executor.regression_engine import RegressionEngine
from css_regression.executor.visibility import ElementVisibilityController
from css_regression.models.config import RegressionConfig
from css_regression.models.results import FailureRecord, RunContext, Verdict
from css_regression.models.suite import CheckCase, SuitePlan
from css_regression.paths import PathResolver
from css_regression.reporter.reporter import ReportAggregator

logger = logging.getLogger(__name__)


@dataclass
class CheckOutcome:
    identifier: str
    viewport: str
    url: str
    status: str  # a CheckState value, or "error"
    message: str = ""
    verdict: Verdict | None = None

    @property
    def failed(self) -> bool:
        return self.status in ("failed", "error")


def _empty_directory(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


class RegressionSuite:
    """Coordinates one regression run."""

    def __init__(self, config: RegressionConfig, driver: BrowserDriver | None = None):
        self.config = config
        self.driver = driver
        self.context: RunContext | None = None
        self.resolver: PathResolver | None = None
        self.aggregator: ReportAggregator | None = None
        self.engine: RegressionEngine | None = None
        self.visibility: ElementVisibilityController | None = None

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def on_suite_start(self, config: RegressionConfig | None = None, init_epoch: int | None = None) -> RunContext:
        """Create the run context. Later calls return the context of the first one."""
        if self.context is not None:
            return self.context
        if config is not None:
            self.config = config

        context = RunContext.from_config(self.config, init_epoch)
        resolver = PathResolver(context)

        if context.automatic_cleanup and context.fail_image_directory.is_dir():
            resolver.ensure_directory(context.fail_image_directory)
            logger.info("Cleaning up fail image directory %s", context.fail_image_directory)
            _empty_directory(context.fail_image_directory)

        resolver.ensure_directory(resolver.temp_directory())
        resolver.ensure_directory(context.reference_image_directory)
        resolver.ensure_directory(resolver.run_directory())

        self.context = context
        self.resolver = resolver
        self.aggregator = ReportAggregator(context, resolver)
        if self.driver is not None:
            self.use_driver(self.driver)
        logger.info("Suite started, run epoch %d", context.init_epoch)
        return context

    def on_check_complete(self, record: FailureRecord) -> None:
        self._require_started()
        self.aggregator.add(record)

    def on_run_end(self) -> Path | None:
        """Restore hidden elements and render the report."""
        self._require_started()
        if self.visibility is not None:
            self.visibility.unhide()
        return self.aggregator.render()

    def use_driver(self, driver: BrowserDriver) -> None:
        """Bind the engine and visibility controller to a browser session."""
        self._require_started()
        self.driver = driver
        self.engine = RegressionEngine(
            driver,
            self.context,
            resolver=self.resolver,
            on_check_complete=self.on_check_complete,
        )
        self.visibility = ElementVisibilityController(driver)

    def _require_started(self) -> None:
        if self.context is None:
            raise CssRegressionError("on_suite_start() has not been called")

    # ------------------------------------------------------------------
    # Suite file execution
    # ------------------------------------------------------------------

    def run(self, plan: SuitePlan, driver) -> list[CheckOutcome]:
        """Run every check of plan for each configured viewport.

        driver must additionally provide goto(url, wait_until) and
        set_window_size(width, height), as PlaywrightDriver does.
        """
        self.on_suite_start()
        self.use_driver(driver)
        outcomes: list[CheckOutcome] = []

        logger.info(
            "Running suite %s: %d check(s) x %d viewport(s)",
            plan.name, plan.check_count, len(self.config.viewports),
        )
        for viewport in self.config.viewports:
            driver.set_window_size(viewport.width, viewport.height)
            for page in plan.pages:
                driver.goto(page.url, wait_until=page.wait_until)
                for selector in plan.hide_selectors + page.hide_selectors:
                    self.visibility.hide(selector)
                try:
                    for case in page.checks:
                        outcomes.append(self._run_check(case, page.url, viewport.size_string))
                finally:
                    self.visibility.unhide()
        return outcomes

    def _run_check(self, case: CheckCase, url: str, viewport: str) -> CheckOutcome:
        # Only what this check hid is restored; page and suite hides stay in place
        hidden_here: list[str] = []
        for selector in case.hide_selectors:
            hidden_here.extend(self.visibility.hide(selector))
        try:
            verdict = self.engine.check(
                case.identifier,
                selector=case.selector,
                max_difference=case.max_difference,
                fuzz=case.fuzz,
            )
            return CheckOutcome(
                identifier=case.identifier,
                viewport=viewport,
                url=url,
                status=verdict.state.value,
                message=verdict.message,
                verdict=verdict,
            )
        except CssRegressionError as e:
            logger.error("Check %s failed: %s", case.identifier, e)
            return CheckOutcome(
                identifier=case.identifier, viewport=viewport, url=url, status="error", message=str(e)
            )
        finally:
            self.visibility.unhide_ids(hidden_here)
