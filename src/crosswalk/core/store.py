"""Persistence for mappings, gaps and drift records.

The engine only reaches storage through the ``MappingStore`` protocol. Two
implementations ship: a JSON file store under ``<project>/.crosswalk/`` and
an in-memory store for tests and embedding.
"""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError
from rich.console import Console

from ..models.drift import ComplianceDrift
from ..models.gap import Gap
from ..models.mapping import RequirementControlMapping
from .config import PROJECT_DIR_NAME

console = Console(stderr=True)

_MAPPINGS = TypeAdapter(list[RequirementControlMapping])
_GAPS = TypeAdapter(list[Gap])
_DRIFTS = TypeAdapter(list[ComplianceDrift])


class MappingStore(Protocol):
    def load_mappings(self) -> list: ...

    def save_mappings(self, mappings: list) -> None: ...

    def load_gaps(self) -> list[Gap]: ...

    def save_gaps(self, gaps: list[Gap]) -> None: ...

    def load_drifts(self) -> list[ComplianceDrift]: ...

    def save_drifts(self, drifts: list[ComplianceDrift]) -> None: ...


class JsonFileStore:
    """Whole-file JSON store (UTF-8, no BOM).

    A file that cannot be parsed loads as an empty collection with a warning;
    it is never a hard error.
    """

    MAPPINGS_FILE = "mappings.json"
    GAPS_FILE = "gaps.json"
    DRIFTS_FILE = "drifts.json"

    def __init__(self, project_path: Path):
        self.root = Path(project_path) / PROJECT_DIR_NAME

    def _read(self, filename: str, adapter: TypeAdapter) -> list:
        path = self.root / filename
        if not path.exists():
            return []
        try:
            content = path.read_text(encoding="utf-8-sig")
            return adapter.validate_python(json.loads(content))
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
            console.print(f"  [yellow]WARN[/yellow] Ignoring malformed {filename}: {type(e).__name__}")
            return []

    def _write(self, filename: str, adapter: TypeAdapter, records: list) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / filename).write_text(
            json.dumps(adapter.dump_python(records, mode="json"), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def load_mappings(self) -> list:
        return self._read(self.MAPPINGS_FILE, _MAPPINGS)

    def save_mappings(self, mappings: list) -> None:
        self._write(self.MAPPINGS_FILE, _MAPPINGS, mappings)

    def load_gaps(self) -> list[Gap]:
        return self._read(self.GAPS_FILE, _GAPS)

    def save_gaps(self, gaps: list[Gap]) -> None:
        self._write(self.GAPS_FILE, _GAPS, gaps)

    def load_drifts(self) -> list[ComplianceDrift]:
        return self._read(self.DRIFTS_FILE, _DRIFTS)

    def save_drifts(self, drifts: list[ComplianceDrift]) -> None:
        self._write(self.DRIFTS_FILE, _DRIFTS, drifts)


class InMemoryStore:
    """Keeps copies so callers cannot mutate stored state by accident."""

    def __init__(self):
        self._mappings: list = []
        self._gaps: list[Gap] = []
        self._drifts: list[ComplianceDrift] = []

    def load_mappings(self) -> list:
        return deepcopy(self._mappings)

    def save_mappings(self, mappings: list) -> None:
        self._mappings = deepcopy(list(mappings))

    def load_gaps(self) -> list[Gap]:
        return deepcopy(self._gaps)

    def save_gaps(self, gaps: list[Gap]) -> None:
        self._gaps = deepcopy(list(gaps))

    def load_drifts(self) -> list[ComplianceDrift]:
        return deepcopy(self._drifts)

    def save_drifts(self, drifts: list[ComplianceDrift]) -> None:
        self._drifts = deepcopy(list(drifts))
