"""Suite file data structures consumed by the CLI runner."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from css_regression.errors import ConfigurationError


class CheckCase(BaseModel):
    identifier: str
    selector: Optional[str] = None  # defaults to "body"
    max_difference: Optional[float] = None
    fuzz: Optional[float] = None
    hide_selectors: list[str] = Field(default_factory=list)  # restored after this check
    description: str = ""


class PageChecks(BaseModel):
    url: str
    hide_selectors: list[str] = Field(default_factory=list)  # restored after the page
    wait_until: str = "load"  # load, domcontentloaded, networkidle
    checks: list[CheckCase] = Field(default_factory=list)


class SuitePlan(BaseModel):
    name: str = "default"
    hide_selectors: list[str] = Field(default_factory=list)  # applied on every page
    pages: list[PageChecks] = Field(default_factory=list)

    @property
    def check_count(self) -> int:
        return sum(len(p.checks) for p in self.pages)

    @classmethod
    def load(cls, path: str | Path) -> "SuitePlan":
        """Load a suite from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Suite file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid suite file {path}: {e}") from e
