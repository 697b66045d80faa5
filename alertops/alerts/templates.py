"""Named alert templates stored as ``<id>.template`` files."""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from alertops.core.exceptions import AlertValidationError

logger = structlog.get_logger(__name__)

_SUFFIX = ".template"
_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class TemplateStore:
    """Create-or-overwrite text blobs keyed by template id."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, template_id: str) -> Path:
        if not _ID_RE.match(template_id) or template_id.startswith("."):
            raise AlertValidationError(f"Invalid template id: {template_id!r}")
        return self._dir / f"{template_id}{_SUFFIX}"

    def save(self, template_id: str, content: str) -> Path:
        path = self._path(template_id)
        self._dir.mkdir(parents=True, exist_ok=True)
        path.write_text(content if content.endswith("\n") else content + "\n")
        logger.info("template_saved", template_id=template_id)
        return path

    def load(self, template_id: str) -> str | None:
        path = self._path(template_id)
        if not path.is_file():
            return None
        return path.read_text()

    def list(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.name[: -len(_SUFFIX)] for p in self._dir.glob(f"*{_SUFFIX}") if p.is_file())
