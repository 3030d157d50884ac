"""Tests for the command line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from css_regression.cli import cli
from css_regression.models.config import RegressionConfig
from css_regression.models.suite import SuitePlan


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write_project(root: Path) -> None:
    RegressionConfig(
        reference_image_directory="ref",
        fail_image_directory="out/fail",
        output_directory="out",
        project_root=str(root),
    ).save(root / "regression-config.json")
    (root / "regression-suite.json").write_text(json.dumps({
        "pages": [{"url": "https://example.com", "checks": [{"identifier": "Page"}]}],
    }))


class TestInit:

    def test_creates_config_and_suite(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init"], input="https://example.com\n")

            assert result.exit_code == 0
            config = RegressionConfig.load("regression-config.json")
            assert config.reference_image_directory == "tests/_data/reference"
            plan = SuitePlan.load("regression-suite.json")
            assert plan.pages[0].url == "https://example.com"
            assert plan.pages[0].checks[0].identifier == "Page"

    def test_declining_overwrite_keeps_files(self, runner):
        with runner.isolated_filesystem():
            Path("regression-config.json").write_text("{}")
            result = runner.invoke(cli, ["init", "--url", "https://example.com"], input="n\n")

            assert result.exit_code == 0
            assert Path("regression-config.json").read_text() == "{}"


class TestRun:

    def test_missing_config_exits_with_error(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["run"])
            assert result.exit_code == 1

    def test_invalid_config_exits_with_error(self, runner):
        with runner.isolated_filesystem():
            Path("regression-config.json").write_text(json.dumps({"fail_image_directory": "x"}))
            Path("regression-suite.json").write_text("{}")
            result = runner.invoke(cli, ["run"])
            assert result.exit_code == 1

    def test_runs_suite_in_browser_session(self, runner, driver, tmp_path, png, pixel_block):
        _write_project(tmp_path)
        args = ["run", "-c", str(tmp_path / "regression-config.json"), "-s", str(tmp_path / "regression-suite.json")]

        with patch("css_regression.cli.BrowserSession") as session:
            session.return_value.__enter__.return_value = driver

            first = runner.invoke(cli, args)
            assert first.exit_code == 0, first.output
            assert (tmp_path / "ref" / "1280x800" / "Page.png").is_file()
            assert driver.visited == ["https://example.com"]

            driver.screenshot = png((20, 20), pixels=pixel_block(10))
            second = runner.invoke(cli, args)

        assert second.exit_code == 1
        assert (tmp_path / "out" / "fail" / "latest" / "index.html").is_file()
        session.assert_called_with(headless=True)
