"""
Control catalog data model for Accord.

Defines the immutable representation of an OSCAL control catalog
(NIST SP 800-53) and the result envelope returned by the catalog cache.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

_OSCAL_ENHANCEMENT = re.compile(r"^([A-Z]{2}-\d+)\.(\d+)$")


def normalize_control_id(control_id: str) -> str:
    """
    Canonicalize a control id for comparison.

    Upper-cases the id and rewrites OSCAL enhancement ids such as
    "ac-2.1" to the printed form "AC-2(1)".

    Raises:
        ValueError: If control_id is blank
    """
    if control_id is None or not control_id.strip():
        raise ValueError("Control ID cannot be null or empty")
    normalized = control_id.strip().upper()
    match = _OSCAL_ENHANCEMENT.match(normalized)
    if match:
        normalized = f"{match.group(1)}({match.group(2)})"
    return normalized


def control_family(control_id: str) -> str:
    """Family prefix of a control id, e.g. "AC" for "ac-2(1)"."""
    return normalize_control_id(control_id).split("-", 1)[0]


class CatalogSource(Enum):
    """Where a catalog value was obtained from."""

    REMOTE = "remote"
    CACHE = "cache"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ControlPart:
    """
    A named prose section of a control (statement, guidance, ...).

    Attributes:
        name: OSCAL part name, e.g. "statement" or "guidance"
        prose: Text of this part
        id: Optional OSCAL part id
        parts: Nested sub-parts
    """

    name: str
    prose: str = ""
    id: str = ""
    parts: tuple[ControlPart, ...] = ()

    def iter_prose(self) -> Iterator[str]:
        """Yield prose of this part and all nested parts."""
        if self.prose:
            yield self.prose
        for part in self.parts:
            yield from part.iter_prose()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "prose": self.prose,
            "parts": [p.to_dict() for p in self.parts],
        }


@dataclass(frozen=True)
class Control:
    """
    A single catalog control.

    Attributes:
        id: Control identifier, upper-cased (e.g. "AC-3")
        title: Control title
        family: Owning group id, upper-cased (e.g. "AC")
        control_class: OSCAL class attribute
        parts: Prose parts of the control
        enhancements: Nested enhancement controls (e.g. "AC-2(1)")
        params: Parameter ids mapped to their labels
    """

    id: str
    title: str
    family: str = ""
    control_class: str = ""
    parts: tuple[ControlPart, ...] = ()
    enhancements: tuple[Control, ...] = ()
    params: dict[str, str] = field(default_factory=dict)

    def _part_text(self, name: str) -> str:
        for part in self.parts:
            if part.name == name:
                return "\n".join(part.iter_prose())
        return ""

    @property
    def statement(self) -> str:
        """Concatenated statement prose."""
        return self._part_text("statement")

    @property
    def guidance(self) -> str:
        """Concatenated supplemental guidance prose."""
        return self._part_text("guidance")

    @property
    def objectives(self) -> list[str]:
        """Assessment objective prose, one entry per objective part."""
        objectives: list[str] = []
        for part in self.parts:
            if part.name in ("assessment-objective", "objective"):
                objectives.extend(part.iter_prose())
        return objectives

    @property
    def enhancement_ids(self) -> list[str]:
        return [e.id for e in self.enhancements]

    def mentions(self, term: str) -> bool:
        """Check whether id, title or any prose contains term (lower-cased)."""
        if term in self.id.lower() or term in self.title.lower():
            return True
        for part in self.parts:
            for prose in part.iter_prose():
                if term in prose.lower():
                    return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "family": self.family,
            "class": self.control_class,
            "statement": self.statement,
            "guidance": self.guidance,
            "enhancements": self.enhancement_ids,
        }


@dataclass(frozen=True)
class ControlGroup:
    """A control family such as "ac" (Access Control)."""

    id: str
    title: str = ""
    controls: tuple[Control, ...] = ()


@dataclass(frozen=True)
class ControlEnhancement:
    """
    Flattened view of a control used for reporting.

    Attributes:
        id: Control id
        title: Control title
        statement: Statement prose
        guidance: Guidance prose
        objectives: Assessment objectives
        last_updated: Catalog timestamp the values were read from
    """

    id: str
    title: str
    statement: str = ""
    guidance: str = ""
    objectives: tuple[str, ...] = ()
    last_updated: datetime | None = None


class Catalog:
    """
    Immutable, versioned control catalog.

    A case-insensitive id index covering controls and their enhancements
    is built at construction. Refreshes replace the whole Catalog.
    """

    def __init__(
        self,
        version: str,
        groups: list[ControlGroup] | tuple[ControlGroup, ...],
        title: str = "",
        last_modified: str = "",
    ) -> None:
        self._version = version
        self._title = title
        self._last_modified = last_modified
        self._groups: tuple[ControlGroup, ...] = tuple(groups)
        self._index: dict[str, Control] = {}
        for group in self._groups:
            for control in group.controls:
                self._index_control(control)

    def _index_control(self, control: Control) -> None:
        self._index.setdefault(normalize_control_id(control.id), control)
        for enhancement in control.enhancements:
            self._index_control(enhancement)

    @property
    def version(self) -> str:
        return self._version

    @property
    def title(self) -> str:
        return self._title

    @property
    def last_modified(self) -> str:
        return self._last_modified

    @property
    def groups(self) -> tuple[ControlGroup, ...]:
        return self._groups

    def control_count(self) -> int:
        """Number of indexed controls including enhancements."""
        return len(self._index)

    def all_controls(self) -> list[Control]:
        """Top-level controls of every group, in catalog order."""
        return [c for g in self._groups for c in g.controls]

    def get_control(self, control_id: str) -> Control | None:
        """
        Look up a control by id, ignoring case.

        Args:
            control_id: Control id such as "ac-3" or "AC-3(1)"

        Returns:
            The Control, or None if the catalog does not define it

        Raises:
            ValueError: If control_id is blank
        """
        return self._index.get(normalize_control_id(control_id))

    def get_controls_by_family(self, family: str) -> list[Control]:
        """Top-level controls of every group whose id starts with family."""
        prefix = family.strip().lower()
        return [
            c
            for g in self._groups
            if g.id.lower().startswith(prefix)
            for c in g.controls
        ]

    def search(self, term: str) -> list[Control]:
        """Top-level controls whose id, title or prose contains term."""
        needle = term.strip().lower()
        return [c for c in self.all_controls() if c.mentions(needle)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self._version,
            "title": self._title,
            "last_modified": self._last_modified,
            "groups": [
                {"id": g.id, "title": g.title, "controls": [c.id for c in g.controls]}
                for g in self._groups
            ],
        }


@dataclass(frozen=True)
class CatalogResult:
    """
    Outcome of a catalog lookup.

    A degraded result carries no catalog and the error that caused both
    the remote and the fallback source to fail.

    Attributes:
        catalog: The catalog, or None when degraded
        source: Provenance of the catalog
        fetched_at: When the catalog was fetched or loaded
        error: Description of the failure for degraded results
    """

    catalog: Catalog | None
    source: CatalogSource | None = None
    fetched_at: datetime | None = None
    error: str | None = None

    @property
    def is_degraded(self) -> bool:
        return self.catalog is None

    @property
    def version(self) -> str:
        return self.catalog.version if self.catalog else "Unknown"
