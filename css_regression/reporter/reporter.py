"""Report aggregation. Collects failure records of a run and renders the report bundle."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from css_regression.models.results import FailureRecord, RunContext
from css_regression.paths import PathResolver

from .html_report import generate_html_report, load_templates

logger = logging.getLogger(__name__)


class ReportAggregator:
    """Collects FailureRecords in completion order and renders them at run end."""

    def __init__(self, context: RunContext, resolver: PathResolver | None = None):
        self.context = context
        self.resolver = resolver or PathResolver(context)
        self._records: list[FailureRecord] = []

    @property
    def records(self) -> tuple[FailureRecord, ...]:
        return tuple(self._records)

    def add(self, record: FailureRecord) -> None:
        self._records.append(record)
        logger.debug(
            "Recorded %s for %s [%s]",
            "new reference" if record.is_new_baseline else "failure",
            record.identifier,
            record.viewport_size,
        )

    def render(self) -> Path | None:
        """Write the report for this run. Returns None, writing nothing, when there is nothing to report."""
        if not self._records:
            logger.debug("No failures or new references, no report written")
            return None

        run_dir = self.resolver.ensure_directory(self.resolver.run_directory())
        templates = load_templates(self.context.template_folder)
        index_path = generate_html_report(self._records, run_dir, self.context.init_epoch, templates)

        latest = self.update_latest_pointer(run_dir)
        logger.info("Report has been created: %s", latest / "index.html")
        return index_path

    def update_latest_pointer(self, run_dir: Path) -> Path:
        """Point <failImageDirectory>/latest at run_dir, replacing any previous pointer.

        A relative symlink where the platform allows it, otherwise a plain file
        holding the run directory name.
        """
        latest = self.resolver.latest_pointer_path()
        if latest.is_symlink() or latest.is_file():
            latest.unlink()
        elif latest.is_dir():
            logger.warning("Replacing directory %s with a pointer to %s", latest, run_dir.name)
            shutil.rmtree(latest)
        try:
            latest.symlink_to(run_dir.name, target_is_directory=True)
        except OSError as e:
            logger.debug("Symlink not available (%s), writing pointer file %s", e, latest)
            latest.write_text(run_dir.name, encoding="utf-8")
        return latest
