from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from yada_engine.core.errors import DPValidationError, DPWarning, YadaError


DPNature = Literal["module", "standard"]
SubDPKind = Literal["specification", "dependency"]
SubDPRequirement = Literal["optional", "required"]
TaskStatus = Literal["pending", "completed", "in_progress", "skipped"]

ALLOWED_DP_NATURES: set[str] = {"module", "standard"}
ALLOWED_SUBDP_KINDS: set[str] = {"specification", "dependency"}
ALLOWED_SUBDP_REQUIREMENTS: set[str] = {"optional", "required"}
ALLOWED_STATUSES: set[str] = {"pending", "completed", "in_progress", "skipped"}

PLAN_VERSION = "1.0.0"


@dataclass(frozen=True)
class SubDP:
    index: int
    name: str
    kind: Optional[SubDPKind]
    description: str = ""
    requirement: Optional[SubDPRequirement] = None
    workflow: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    intents: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SubDPs:
    order: bool = False
    entries: dict[int, SubDP] = field(default_factory=dict)

    def names(self) -> list[str]:
        return [s.name for s in self.entries.values()]


@dataclass(frozen=True)
class DesignPrescription:
    """A parsed .yada file. The id is the file's base name."""

    id: str
    name: str
    nature: Optional[DPNature]
    file_path: str
    priority: int = 0
    description: str = ""
    phase: Optional[str] = None
    dependencies: list[str] = field(default_factory=list)
    subdps: SubDPs = field(default_factory=SubDPs)


@dataclass
class GraphNode:
    id: str
    dp: DesignPrescription
    dependencies: list[str] = field(default_factory=list)  # ids this node depends on
    dependents: list[str] = field(default_factory=list)  # ids depending on this node
    level: int = 0


@dataclass
class Graph:
    nodes: dict[str, GraphNode]
    levels: dict[int, list[str]]


@dataclass
class PlanEntry:
    ref: str
    id: str
    status: TaskStatus
    level: int

    def to_dict(self) -> dict[str, Any]:
        return {"ref": self.ref, "id": self.id, "status": self.status, "level": self.level}


@dataclass
class PlanLevel:
    level: int
    entries: list[PlanEntry]

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "entries": [e.to_dict() for e in self.entries]}


@dataclass
class CompiledPlan:
    """The persisted workflow ("yadasmith"): ordered levels plus live status."""

    version: str
    compiled_at: str
    levels: list[PlanLevel]

    def entries(self) -> list[PlanEntry]:
        return [e for lvl in self.levels for e in lvl.entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "compiledAt": self.compiled_at,
            "levels": [lvl.to_dict() for lvl in self.levels],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompiledPlan":
        """Build a plan from its persisted layout.

        Raises ValueError when the shape does not match.
        """
        if not isinstance(data, dict):
            raise ValueError("plan must be a mapping")

        version = data.get("version")
        compiled_at = data.get("compiledAt")
        raw_levels = data.get("levels")
        if not isinstance(version, str):
            raise ValueError("version must be a string")
        if not isinstance(compiled_at, str):
            raise ValueError("compiledAt must be a string")
        if not isinstance(raw_levels, list):
            raise ValueError("levels must be a list")

        levels: list[PlanLevel] = []
        for li, raw_level in enumerate(raw_levels):
            if not isinstance(raw_level, dict) or not isinstance(raw_level.get("level"), int):
                raise ValueError(f"levels[{li}] must have an integer level")
            level_num = raw_level["level"]
            raw_entries = raw_level.get("entries") or []
            if not isinstance(raw_entries, list):
                raise ValueError(f"levels[{li}].entries must be a list")

            entries: list[PlanEntry] = []
            for ei, raw in enumerate(raw_entries):
                loc = f"levels[{li}].entries[{ei}]"
                if not isinstance(raw, dict):
                    raise ValueError(f"{loc} must be a mapping")
                status = raw.get("status")
                if status not in ALLOWED_STATUSES:
                    raise ValueError(f"{loc}.status must be one of {sorted(ALLOWED_STATUSES)}")
                if not isinstance(raw.get("id"), str):
                    raise ValueError(f"{loc}.id must be a string")
                entry_level = raw.get("level", level_num)
                entries.append(
                    PlanEntry(
                        ref=str(raw.get("ref", raw["id"])),
                        id=raw["id"],
                        status=status,
                        level=entry_level if isinstance(entry_level, int) else level_num,
                    )
                )
            levels.append(PlanLevel(level=level_num, entries=entries))

        return cls(version=version, compiled_at=compiled_at, levels=levels)


@dataclass
class ParseResult:
    dps: list[DesignPrescription] = field(default_factory=list)
    errors: list[YadaError] = field(default_factory=list)


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[DPValidationError] = field(default_factory=list)
    warnings: list[DPWarning] = field(default_factory=list)

    def error(self, err: DPValidationError) -> None:
        self.errors.append(err)
        self.valid = False

    def merge(self, other: "ValidationResult") -> None:
        self.valid = self.valid and other.valid
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


@dataclass
class ResolveResult:
    plan: Optional[CompiledPlan] = None
    errors: list[YadaError] = field(default_factory=list)
    warnings: list[DPWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.plan is not None


@dataclass(frozen=True)
class StatusSummary:
    completed: int = 0
    pending: int = 0
    total: int = 0
    percent_complete: int = 0
    next_task: Optional[PlanEntry] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "pending": self.pending,
            "total": self.total,
            "percentComplete": self.percent_complete,
            "nextTask": self.next_task.to_dict() if self.next_task else None,
        }
