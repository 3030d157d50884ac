"""Tests for report aggregation and HTML report rendering."""

import logging
import os
from pathlib import Path

import pytest

from css_regression.models.results import FailureRecord, RunContext
from css_regression.reporter.html_report import build_item, generate_html_report, load_templates
from css_regression.reporter.reporter import ReportAggregator


def _make_record(**kwargs) -> FailureRecord:
    """Create a FailureRecord for a failing check with placeholder images."""
    defaults = {
        "identifier": "Header",
        "viewport_size": "1280x800",
        "window_size": "1280x800",
        "reference_image_path": "1280x800/Header.png",
        "fail_image": "RkFJTA==",
        "diff_image": "RElGRg==",
        "reference_image": "UkVG",
    }
    defaults.update(kwargs)
    return FailureRecord(**defaults)


@pytest.fixture
def aggregator(run_context, resolver) -> ReportAggregator:
    return ReportAggregator(run_context, resolver)


class TestBuildItem:

    def test_fail_item_embeds_all_three_images(self):
        item = build_item(_make_record(), load_templates())
        assert 'class="item fail"' in item
        assert "<strong>Header</strong>" in item
        assert "data:image/png;base64,RkFJTA==" in item
        assert "data:image/png;base64,RElGRg==" in item
        assert "data:image/png;base64,UkVG" in item

    def test_new_baseline_uses_new_item_template(self):
        """An empty fail image renders as a new reference, not a failure."""
        item = build_item(_make_record(fail_image="", diff_image=""), load_templates())
        assert 'class="item new"' in item
        assert "NEW" in item
        assert "item fail" not in item

    def test_identifier_is_escaped(self):
        item = build_item(_make_record(identifier="<script>x</script>"), load_templates())
        assert "<script>x</script>" not in item
        assert "&lt;script&gt;" in item


class TestGenerateHtmlReport:

    def test_writes_index_and_assets(self, tmp_path):
        index = generate_html_report([_make_record()], tmp_path / "run", 42)
        assert index == tmp_path / "run" / "index.html"
        assert (tmp_path / "run" / "index.css").is_file()
        assert (tmp_path / "run" / "index.js").is_file()
        html = index.read_text()
        assert "Run: 42" in html
        assert "1 failed" in html

    def test_counts_new_references_separately(self, tmp_path):
        records = [_make_record(), _make_record(identifier="Footer", fail_image="", diff_image="")]
        html = generate_html_report(records, tmp_path, 1).read_text()
        assert "1 failed" in html
        assert "1 new reference image(s)" in html

    def test_no_temporary_files_left_behind(self, tmp_path):
        generate_html_report([_make_record()], tmp_path, 1)
        assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


class TestLoadTemplates:

    def test_custom_templates_take_precedence(self, tmp_path):
        (tmp_path / "FailItem.html").write_text("<p>custom $identifier</p>")
        templates = load_templates(tmp_path)
        assert build_item(_make_record(), templates) == "<p>custom Header</p>"
        # Untouched templates keep their defaults
        assert "item new" in build_item(_make_record(fail_image=""), templates)

    def test_custom_asset_is_copied(self, tmp_path):
        folder = tmp_path / "templates"
        folder.mkdir()
        (folder / "index.css").write_text("body { color: red; }")
        generate_html_report([_make_record()], tmp_path / "run", 1, load_templates(folder))
        assert (tmp_path / "run" / "index.css").read_text() == "body { color: red; }"

    def test_missing_folder_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_templates(tmp_path / "nope")


class TestReportAggregator:

    def test_no_records_writes_nothing(self, aggregator, resolver):
        assert aggregator.render() is None
        assert not resolver.run_directory().exists()
        assert not os.path.lexists(resolver.latest_pointer_path())

    def test_items_keep_completion_order(self, aggregator):
        """Two failing checks produce one page with both items in order."""
        aggregator.add(_make_record(identifier="First"))
        aggregator.add(_make_record(identifier="Second"))

        index = aggregator.render()

        html = index.read_text()
        assert html.count('class="item fail"') == 2
        assert html.index("<strong>First</strong>") < html.index("<strong>Second</strong>")

    def test_report_lands_in_run_directory(self, aggregator, resolver, epoch):
        aggregator.add(_make_record())
        index = aggregator.render()
        assert index == resolver.run_directory() / "index.html"
        assert index.parent.name == str(epoch)

    def test_records_are_read_only_snapshot(self, aggregator):
        aggregator.add(_make_record())
        records = aggregator.records
        assert isinstance(records, tuple)
        assert records[0].identifier == "Header"

    def test_latest_points_at_this_run(self, aggregator, resolver, epoch):
        aggregator.add(_make_record())
        aggregator.render()

        latest = resolver.latest_pointer_path()
        assert latest.is_symlink()
        assert os.readlink(latest) == str(epoch)
        assert latest.resolve() == resolver.run_directory().resolve()
        assert (latest / "index.html").is_file()

    def test_latest_replaces_previous_run(self, regression_config, aggregator, resolver):
        older = RunContext.from_config(regression_config, init_epoch=1)
        old_aggregator = ReportAggregator(older)
        old_aggregator.add(_make_record())
        old_aggregator.render()

        aggregator.add(_make_record())
        aggregator.render()

        latest = resolver.latest_pointer_path()
        assert latest.resolve() == resolver.run_directory().resolve()

    def test_pointer_file_when_symlinks_unavailable(self, aggregator, resolver, epoch, monkeypatch):
        def no_symlinks(self, target, target_is_directory=False):
            raise OSError("symlinks not permitted")

        monkeypatch.setattr(Path, "symlink_to", no_symlinks)
        aggregator.add(_make_record())
        aggregator.render()

        latest = resolver.latest_pointer_path()
        assert latest.is_file()
        assert latest.read_text() == str(epoch)

    def test_stale_latest_directory_is_replaced(self, aggregator, resolver, epoch, caplog):
        stale = resolver.latest_pointer_path()
        stale.mkdir(parents=True)
        (stale / "index.html").write_text("old report")

        with caplog.at_level(logging.WARNING, logger="css_regression.reporter.reporter"):
            aggregator.add(_make_record())
            aggregator.render()

        assert stale.is_symlink()
        assert os.readlink(stale) == str(epoch)
        assert "Replacing directory" in caplog.text

    def test_stale_latest_directory_without_symlinks(self, aggregator, resolver, epoch, monkeypatch):
        def no_symlinks(self, target, target_is_directory=False):
            raise OSError("symlinks not permitted")

        monkeypatch.setattr(Path, "symlink_to", no_symlinks)
        resolver.latest_pointer_path().mkdir(parents=True)
        aggregator.add(_make_record())
        aggregator.render()

        latest = resolver.latest_pointer_path()
        assert latest.is_file()
        assert latest.read_text() == str(epoch)

    def test_custom_template_folder_from_context(self, regression_config, tmp_path, epoch):
        folder = tmp_path / "report-templates"
        folder.mkdir()
        (folder / "Page.html").write_text("custom page $run_epoch $items")
        regression_config.template_folder = str(folder)
        context = RunContext.from_config(regression_config, init_epoch=epoch)

        aggregator = ReportAggregator(context)
        aggregator.add(_make_record())
        html = aggregator.render().read_text()

        assert html.startswith(f"custom page {epoch}")
        assert "<strong>Header</strong>" in html
