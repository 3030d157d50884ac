"""Configuration models for the regression engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from css_regression.errors import ConfigurationError


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 800
    name: str = "desktop"

    @property
    def size_string(self) -> str:
        return f"{self.width}x{self.height}"


class RegressionConfig(BaseModel):
    # Required artifact locations
    reference_image_directory: str
    fail_image_directory: str

    # Comparison defaults. max_difference is on the percent scale (0..100)
    # of the normalized mean-square-error score.
    max_difference: float = Field(default=0.01, ge=0.0, le=100.0)
    fuzz: float = Field(default=0.3, ge=0.0, le=100.0)

    # Empty the fail image directory once before the run epoch dir is created
    automatic_cleanup: bool = True

    # Layout
    project_root: str = "."
    output_directory: str = "_output"

    # Capture the viewport and crop to the element instead of an element shot
    crop_to_element: bool = False

    # Report templates (Page.html, FailItem.html, NewItem.html, index.css, index.js)
    template_folder: Optional[str] = None

    # Browser settings used by the CLI runner
    viewports: list[ViewportConfig] = Field(
        default_factory=lambda: [ViewportConfig(width=1280, height=800, name="desktop")]
    )
    headless: bool = True

    @field_validator("reference_image_directory", "fail_image_directory")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("directory must not be empty")
        return v

    @classmethod
    def from_dict(cls, data: dict) -> "RegressionConfig":
        """Build a config, converting validation errors to ConfigurationError."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid regression config: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> "RegressionConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
