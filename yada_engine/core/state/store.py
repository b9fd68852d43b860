from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

import yaml

from yada_engine.core.config import DEFAULT_CONFIG, ProjectConfig
from yada_engine.core.errors import DPValidationError, DPWarning, PlanStoreError
from yada_engine.core.model import CompiledPlan, StatusSummary, ValidationResult
from yada_engine.core.resolve.resolver import get_next_task, get_task_by_id, utc_timestamp

logger = logging.getLogger(__name__)


def plan_path(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> Path:
    return Path(root) / config.state_file


def has_plan(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> bool:
    return plan_path(root, config).is_file()


def read_plan(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> Optional[CompiledPlan]:
    """Return the stored plan, or None when nothing has been compiled yet."""
    p = plan_path(root, config)
    if not p.exists():
        return None

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise PlanStoreError(code="E_PLAN_READ", message=str(e), file=str(p)) from e
    except yaml.YAMLError as e:
        raise PlanStoreError(code="E_PLAN_PARSE", message=str(e), file=str(p)) from e

    try:
        return CompiledPlan.from_dict(data)
    except ValueError as e:
        raise PlanStoreError(code="E_PLAN_INVALID", message=str(e), file=str(p)) from e


def write_plan(root: str | Path, plan: CompiledPlan, config: ProjectConfig = DEFAULT_CONFIG) -> None:
    """Overwrite the stored plan.

    Written to a sibling temp file then renamed, so readers never see a
    partial file. Not safe against concurrent writers.
    """
    p = plan_path(root, config)
    content = yaml.safe_dump(plan.to_dict(), sort_keys=False, default_flow_style=False, allow_unicode=True)

    tmp_path: Optional[Path] = None
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=p.parent,
            delete=False,
            prefix=f"{p.name}.",
            suffix=".tmp",
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            tmp_file.write(content)
        os.replace(tmp_path, p)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise PlanStoreError(code="E_PLAN_WRITE", message=str(e), file=str(p)) from e

    logger.debug("wrote %s", p)


def mark_one(root: str | Path, task_id: str, config: ProjectConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Mark a single task completed. Every other entry keeps its status."""

    def apply(plan: CompiledPlan) -> None:
        entry = get_task_by_id(plan, task_id)
        assert entry is not None
        entry.status = "completed"
        logger.info("marked '%s' as completed", task_id)

    return _mutate(root, task_id, apply, config)


def mark_through(root: str | Path, task_id: str, config: ProjectConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Resynchronize the plan to a single frontier ending at task_id.

    In flattened order, every entry up to and including the target becomes
    completed; completed entries after it go back to pending.
    """

    def apply(plan: CompiledPlan) -> None:
        found = False
        completed = 0
        for entry in plan.entries():
            if found:
                if entry.status == "completed":
                    entry.status = "pending"
                continue
            entry.status = "completed"
            completed += 1
            if entry.id == task_id:
                found = True
        logger.info("marked %d tasks as completed through '%s'", completed, task_id)

    return _mutate(root, task_id, apply, config)


def reset_all(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Move every completed entry back to pending. Other statuses are kept."""
    result = ValidationResult()
    plan = read_plan(root, config)
    if plan is None:
        result.warnings.append(
            DPWarning(
                code="W_NO_PLAN",
                message=f"No {config.state_file} file found. Nothing to reset.",
            )
        )
        return result

    reset = 0
    for entry in plan.entries():
        if entry.status == "completed":
            entry.status = "pending"
            reset += 1

    plan.compiled_at = utc_timestamp()
    write_plan(root, plan, config)
    logger.info("reset %d tasks to pending", reset)
    return result


def get_status(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> StatusSummary:
    plan = read_plan(root, config)
    if plan is None:
        return StatusSummary()

    entries = plan.entries()
    total = len(entries)
    completed = sum(1 for e in entries if e.status == "completed")
    # Round half up; round() would round 0.5 to even.
    percent = (completed * 200 + total) // (2 * total) if total else 0

    summary = StatusSummary(
        completed=completed,
        pending=total - completed,
        total=total,
        percent_complete=percent,
        next_task=get_next_task(plan),
    )
    logger.debug("status: %d/%d completed (%d%%)", completed, total, percent)
    return summary


def _mutate(
    root: str | Path,
    task_id: str,
    apply: Callable[[CompiledPlan], None],
    config: ProjectConfig,
) -> ValidationResult:
    """Read, check the target exists, mutate in memory, write once.

    No write happens when the plan or the target is missing.
    """
    result = ValidationResult()
    plan = read_plan(root, config)
    if plan is None:
        result.error(
            DPValidationError(
                code="E_NO_PLAN",
                message=f'No {config.state_file} file found. Run "yada compile" first.',
            )
        )
        return result

    if get_task_by_id(plan, task_id) is None:
        result.error(
            DPValidationError(
                code="E_TASK_NOT_FOUND",
                message=f"Task not found: {task_id}",
                file=str(plan_path(root, config)),
            )
        )
        return result

    apply(plan)
    plan.compiled_at = utc_timestamp()
    write_plan(root, plan, config)
    return result
