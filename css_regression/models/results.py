"""Result data structures produced by a regression run."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict

from css_regression.errors import ConfigurationError
from css_regression.models.config import RegressionConfig


class Classification(str, Enum):
    IDENTICAL = "identical"
    WITHIN_TOLERANCE = "within_tolerance"
    FAILING = "failing"


class CheckState(str, Enum):
    """Terminal state of a single regression check."""
    INCOMPLETE = "incomplete"  # reference created on this run
    PASSED = "passed"
    TOLERATED = "tolerated"  # passed, but a diff artifact was written
    FAILED = "failed"


class ImageRef(BaseModel):
    """Identifies one regression check instance."""
    model_config = ConfigDict(frozen=True)

    identifier: str
    viewport_size: str  # e.g. "1280x800"

    @property
    def path_segments(self) -> tuple[str, ...]:
        """Directory and file name parts, below an artifact root, without extension."""
        from css_regression.paths import sanitize_identifier

        return (self.viewport_size, *sanitize_identifier(self.identifier).split("/"))


@dataclass
class ComparisonResult:
    absolute_difference: float  # number of pixels outside the fuzz window
    normalized_difference: float  # percent-scale mean square error, 2 decimals
    classification: Classification
    diff_image: Optional[Image.Image] = None

    @property
    def has_difference(self) -> bool:
        return self.classification != Classification.IDENTICAL


@dataclass
class Verdict:
    image_ref: ImageRef
    state: CheckState
    reference_path: Path
    comparison: Optional[ComparisonResult] = None
    fail_path: Optional[Path] = None
    diff_path: Optional[Path] = None
    message: str = ""
    comments: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.state in (CheckState.PASSED, CheckState.TOLERATED)


class FailureRecord(BaseModel):
    """One report entry. An empty fail_image marks a newly created baseline."""
    model_config = ConfigDict(frozen=True)

    identifier: str
    viewport_size: str
    window_size: str = ""
    reference_image_path: str  # relative to the reference image directory
    fail_image: str = ""  # base64 PNG
    diff_image: str = ""  # base64 PNG
    reference_image: str = ""  # base64 PNG

    @property
    def is_new_baseline(self) -> bool:
        return self.fail_image == ""


class RunContext(BaseModel):
    """Settings shared by every check of one run. Built once per process."""
    model_config = ConfigDict(frozen=True)

    init_epoch: int
    automatic_cleanup: bool
    max_difference: float
    fuzz: float
    project_root: Path
    reference_image_directory: Path
    fail_image_directory: Path
    output_directory: Path
    crop_to_element: bool = False
    template_folder: Optional[Path] = None

    @classmethod
    def from_config(cls, config: RegressionConfig, init_epoch: int | None = None) -> "RunContext":
        """Resolve configured directories against the project root."""
        root = Path(config.project_root).resolve()
        reference_dir = root / config.reference_image_directory
        fail_dir = root / config.fail_image_directory
        _check_cleanup_safe(root, reference_dir, fail_dir)
        return cls(
            init_epoch=init_epoch if init_epoch is not None else int(time.time()),
            automatic_cleanup=config.automatic_cleanup,
            max_difference=config.max_difference,
            fuzz=config.fuzz,
            project_root=root,
            reference_image_directory=reference_dir,
            fail_image_directory=fail_dir,
            output_directory=root / config.output_directory,
            crop_to_element=config.crop_to_element,
            template_folder=Path(config.template_folder) if config.template_folder else None,
        )


def _check_cleanup_safe(root: Path, reference_dir: Path, fail_dir: Path) -> None:
    """The fail image directory gets emptied, so it must not contain the references or the project."""
    fail = fail_dir.resolve()
    if root.is_relative_to(fail):
        raise ConfigurationError(
            f"fail_image_directory {fail_dir} must be a subdirectory of the project root {root}"
        )
    if reference_dir.resolve().is_relative_to(fail):
        raise ConfigurationError(
            f"reference_image_directory {reference_dir} must not be inside fail_image_directory {fail_dir}"
        )
