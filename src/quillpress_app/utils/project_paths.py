#!filepath: src/quillpress_app/utils/project_paths.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    """Resolved project paths.

    Relative config and database paths resolve against the project root
    rather than the current working directory.

    Attributes:
        root: Project root directory.
        configs_override: Explicit configs directory, from QUILLPRESS_CONFIG_DIR.
    """

    root: Path
    configs_override: Optional[Path] = None

    @property
    def configs_dir(self) -> Path:
        if self.configs_override is not None:
            return self.resolve_relative(self.configs_override)
        return (self.root / "configs").resolve()

    @property
    def data_dir(self) -> Path:
        return (self.root / "data").resolve()

    @classmethod
    def discover(cls, start: Optional[Path] = None) -> ProjectPaths:
        """Locate the project root by walking up to a packaging marker.

        Args:
            start: Optional starting path.

        Returns:
            ProjectPaths: Resolved project paths.
        """
        root = _find_upwards(
            start=start or Path(__file__).resolve(),
            markers=("pyproject.toml",),
        )
        raw = str(os.getenv("QUILLPRESS_CONFIG_DIR", "") or "").strip()
        return cls(root=root, configs_override=Path(raw) if raw else None)

    def resolve_relative(self, value: str | Path) -> Path:
        p = Path(value).expanduser()
        if p.is_absolute():
            return p.resolve()
        return (self.root / p).resolve()


def _find_upwards(start: Path, markers: Iterable[str]) -> Path:
    start = start.resolve()
    for parent in (start,) + tuple(start.parents):
        for marker in markers:
            if (parent / marker).exists():
                return parent
    return Path.cwd().resolve()
