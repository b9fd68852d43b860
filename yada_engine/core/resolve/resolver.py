from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from yada_engine.core.config import DEFAULT_CONFIG, ProjectConfig
from yada_engine.core.errors import DPWarning
from yada_engine.core.graph.graph import build_graph, detect_cycles, nodes_at_level, sorted_levels
from yada_engine.core.io.load_dps import load_all
from yada_engine.core.model import (
    PLAN_VERSION,
    CompiledPlan,
    DesignPrescription,
    PlanEntry,
    PlanLevel,
    ResolveResult,
)
from yada_engine.core.validate.validate_dps import validate_all

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve(dps: Iterable[DesignPrescription]) -> ResolveResult:
    """Compile DPs into leveled, deterministically ordered plan entries.

    build -> cycle check -> level -> order. A cycle short-circuits: errors are
    returned and no plan is produced. Every entry starts out pending.
    """
    dps = list(dps)
    result = ResolveResult()

    if not dps:
        result.plan = empty_plan()
        result.warnings.append(DPWarning(code="W_NO_DPS", message="No DPs found to compile"))
        return result

    graph = build_graph(dps)

    cycle_check = detect_cycles(graph)
    if not cycle_check.valid:
        result.errors.extend(cycle_check.errors)
        return result

    levels: list[PlanLevel] = []
    for level_num in sorted_levels(graph):
        entries = [
            PlanEntry(ref=node.dp.name, id=node.id, status="pending", level=level_num)
            for node in nodes_at_level(graph, level_num)
        ]
        levels.append(PlanLevel(level=level_num, entries=entries))

    plan = CompiledPlan(version=PLAN_VERSION, compiled_at=utc_timestamp(), levels=levels)
    sort_by_priority(plan, dps)

    logger.info("compiled %d tasks across %d levels", len(plan.entries()), len(levels))
    result.plan = plan
    return result


def empty_plan() -> CompiledPlan:
    return CompiledPlan(version=PLAN_VERSION, compiled_at=utc_timestamp(), levels=[])


def sort_by_priority(plan: CompiledPlan, dps: Iterable[DesignPrescription]) -> None:
    """Order each level by priority (highest first), then id.

    Ids compare by code point, never by locale, so the order is reproducible.
    """
    priority = {dp.id: dp.priority for dp in dps}
    for level in plan.levels:
        level.entries.sort(key=lambda e: (-priority.get(e.id, 0), e.id))


def compile_project(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> ResolveResult:
    """Parse, validate and resolve the DPs under root.

    Load and validation errors are returned alongside warnings and stop the
    pipeline before resolving. Writing the plan is left to the caller.
    """
    parsed = load_all(root, config)
    if parsed.errors:
        return ResolveResult(errors=list(parsed.errors))

    validation = validate_all(parsed.dps, config)
    if not validation.valid:
        return ResolveResult(errors=list(validation.errors), warnings=list(validation.warnings))

    result = resolve(parsed.dps)
    result.warnings = _dedupe(validation.warnings + result.warnings)
    return result


def _dedupe(warnings: list[DPWarning]) -> list[DPWarning]:
    seen: set[tuple[str, str]] = set()
    out: list[DPWarning] = []
    for w in warnings:
        key = (w.code, w.message)
        if key in seen:
            continue
        seen.add(key)
        out.append(w)
    return out


def flattened_order(plan: CompiledPlan) -> list[str]:
    return [e.id for e in plan.entries()]


def get_task_by_id(plan: CompiledPlan, task_id: str) -> Optional[PlanEntry]:
    for entry in plan.entries():
        if entry.id == task_id:
            return entry
    return None


def get_task_level(plan: CompiledPlan, task_id: str) -> Optional[int]:
    entry = get_task_by_id(plan, task_id)
    return entry.level if entry else None


def count_completed(plan: CompiledPlan) -> int:
    return sum(1 for e in plan.entries() if e.status == "completed")


def count_pending(plan: CompiledPlan) -> int:
    return sum(1 for e in plan.entries() if e.status == "pending")


def is_fully_completed(plan: CompiledPlan) -> bool:
    return all(e.status == "completed" for e in plan.entries())


def get_next_task(plan: CompiledPlan) -> Optional[PlanEntry]:
    """First entry in flattened order that is not completed."""
    for entry in plan.entries():
        if entry.status != "completed":
            return entry
    return None


def get_tasks_at_level(plan: CompiledPlan, level: int) -> list[PlanEntry]:
    for lvl in plan.levels:
        if lvl.level == level:
            return lvl.entries
    return []


def get_max_level(plan: CompiledPlan) -> int:
    return max((lvl.level for lvl in plan.levels), default=0)
