#!filepath: tests/test_import_contract.py
from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True, slots=True)
class ImportContract:
    """A list of import targets that must remain stable.

    Args:
        targets: Import strings to validate.
    """

    targets: tuple[str, ...]


def _contract() -> ImportContract:
    return ImportContract(
        targets=(
            "quillpress_app",
            "quillpress_app.cli",
            "quillpress_app.errors",
            "quillpress_app.models",
            "quillpress_app.settings",
            "quillpress_app.db.connection",
            "quillpress_app.db.migrate",
            "quillpress_app.db.reset",
            "quillpress_app.workflow",
            "quillpress_app.workflow.permissions",
            "quillpress_app.workflow.lifecycle",
            "quillpress_app.workflow.revisions",
            "quillpress_app.workflow.submissions",
            "quillpress_app.workflow.compliance",
            "quillpress_app.workflow.notifications",
            "quillpress_app.workflow.engagement",
        )
    )


def _import_all(targets: Iterable[str]) -> None:
    for t in targets:
        importlib.import_module(t)


def test_import_contract() -> None:
    """Validate that stable import targets remain importable."""
    _import_all(_contract().targets)
