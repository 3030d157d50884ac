"""Path resolution for reference, fail, diff and temp images."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from css_regression.errors import PathEscapesRootError
from css_regression.models.results import RunContext

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9./_]")

FAIL_SUFFIXES = ("fail", "diff")


def sanitize_identifier(raw: str) -> str:
    """Turn an identifier into a file name. Slashes are kept to create subfolders.

    Lossy: identifiers differing only in stripped characters collide.
    """
    name = _UNSAFE_CHARS.sub("", raw)
    # Whitespace is already gone, so only the leading word gets capitalized.
    name = name[:1].upper() + name[1:]
    return name.replace(" ", "_")


def window_size_string(width: int, height: int) -> str:
    return f"{width}x{height}"


class PathResolver:
    """Computes every artifact path of a run from its RunContext."""

    def __init__(self, context: RunContext):
        self.context = context
        self._seen: dict[tuple[str, str], set[str]] = {}

    @property
    def project_root(self) -> Path:
        return self.context.project_root

    def _confine(self, path: Path) -> Path:
        resolved = path.resolve()
        if not resolved.is_relative_to(self.project_root):
            raise PathEscapesRootError(path, self.project_root)
        return path

    def _sanitized(self, identifier: str, viewport_size: str) -> str:
        safe = sanitize_identifier(identifier)
        key = (viewport_size, safe)
        raws = self._seen.setdefault(key, set())
        if raws and identifier not in raws:
            logger.warning(
                "Identifiers %s and %r both map to %s for %s; artifacts will overwrite each other",
                sorted(raws), identifier, safe, viewport_size,
            )
        raws.add(identifier)
        return safe

    def collisions(self) -> dict[str, list[str]]:
        """Sanitized names that more than one raw identifier mapped to."""
        return {
            f"{size}/{safe}": sorted(raws)
            for (size, safe), raws in self._seen.items()
            if len(raws) > 1
        }

    def reference_image_path(self, identifier: str, viewport_size: str) -> Path:
        path = (
            self.context.reference_image_directory
            / viewport_size
            / f"{self._sanitized(identifier, viewport_size)}.png"
        )
        return self._confine(path)

    def run_directory(self) -> Path:
        return self._confine(self.context.fail_image_directory / str(self.context.init_epoch))

    def fail_image_path(self, identifier: str, viewport_size: str, suffix: str = "fail") -> Path:
        if suffix not in FAIL_SUFFIXES:
            raise ValueError(f"Unknown fail image suffix: {suffix}")
        name = f"{suffix}.{self._sanitized(identifier, viewport_size)}.png"
        return self._confine(self.run_directory() / viewport_size / name)

    def temp_image_path(self, identifier: str, viewport_size: str) -> Path:
        path = (
            self.context.output_directory
            / "debug"
            / viewport_size
            / self._sanitized(identifier, viewport_size)
        )
        return self._confine(path)

    def temp_directory(self) -> Path:
        return self._confine(self.context.output_directory / "debug")

    def latest_pointer_path(self) -> Path:
        return self._confine(self.context.fail_image_directory / "latest")

    def relative_reference_path(self, path: Path) -> str:
        return str(path.relative_to(self.context.reference_image_directory))

    def ensure_directory(self, path: Path) -> Path:
        """Create path and its missing parents. Refuses paths outside the project root."""
        self._confine(path)
        if not path.is_dir():
            logger.debug('Directory "%s" does not exist. Creating it', path)
            path.mkdir(parents=True, exist_ok=True)
        return path
