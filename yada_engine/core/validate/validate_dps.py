from __future__ import annotations

import logging
import re
from collections import Counter
from pathlib import Path

from yada_engine.core.config import DEFAULT_CONFIG, ProjectConfig
from yada_engine.core.errors import DPValidationError, DPWarning
from yada_engine.core.graph.graph import build_graph, detect_cycles
from yada_engine.core.model import DesignPrescription, ValidationResult

logger = logging.getLogger(__name__)

# DP ids become file names and plan keys; keep them shell and YAML friendly.
ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_dp(
    dp: DesignPrescription,
    all_dps: list[DesignPrescription],
    config: ProjectConfig = DEFAULT_CONFIG,
) -> ValidationResult:
    """Validate one DP against the rest of the project.

    Structural problems are errors; naming and completeness hints are warnings.
    """
    result = ValidationResult()
    file = dp.file_path

    duplicates = [d.id for d in all_dps if d.name == dp.name and d.id != dp.id]
    if duplicates:
        result.error(
            DPValidationError(
                code="E_DUPLICATE_NAME",
                message=f"DP name '{dp.name}' is duplicated in: {', '.join(duplicates)}",
                file=file,
                path="name",
            )
        )

    expected_id = Path(file).name
    if expected_id.endswith(config.extension):
        expected_id = expected_id[: -len(config.extension)]
    if dp.id != expected_id:
        result.warnings.append(
            DPWarning(
                code="W_ID_MISMATCH",
                message=f"DP id '{dp.id}' doesn't match expected filename '{expected_id}'",
                file=file,
            )
        )
    if not ID_PATTERN.match(dp.id):
        result.warnings.append(
            DPWarning(
                code="W_ID_CONVENTION",
                message=f"DP id '{dp.id}' should only use letters, digits, '_', '-' or '.'",
                file=file,
            )
        )

    known_ids = {d.id for d in all_dps}
    for di, dep_id in enumerate(dp.dependencies):
        if dep_id not in known_ids:
            result.error(
                DPValidationError(
                    code="E_UNKNOWN_DEPENDENCY",
                    message=f"DP '{dp.id}' depends on non-existent DP: {dep_id}",
                    file=file,
                    path=f"dependencies[{di}]",
                )
            )

    _validate_subdps(dp, all_dps, result)

    if result.valid:
        logger.info("%s: valid", dp.id)
    return result


def _validate_subdps(dp: DesignPrescription, all_dps: list[DesignPrescription], result: ValidationResult) -> None:
    file = dp.file_path
    names = dp.subdps.names()

    for name, count in Counter(names).items():
        if count > 1:
            result.error(
                DPValidationError(
                    code="E_DUPLICATE_SUBDP",
                    message=f"DP '{dp.id}' has duplicate subdp name: {name} (count={count})",
                    file=file,
                    path="subdps",
                )
            )

    known_ids = {d.id for d in all_dps}
    # Cross references name the parent by id or by display name.
    subdp_names_by_parent: dict[str, set[str]] = {}
    for d in all_dps:
        subdp_names_by_parent.setdefault(d.id, set()).update(d.subdps.names())
        subdp_names_by_parent.setdefault(d.name, set()).update(d.subdps.names())

    for num, subdp in dp.subdps.entries.items():
        path = f"subdps.{num}"
        for dep in subdp.dependencies:
            if dep in names or dep in known_ids:
                continue
            if ":" in dep:
                parent, _, subdp_name = dep.partition(":")
                if subdp_name in subdp_names_by_parent.get(parent, set()):
                    continue
            result.error(
                DPValidationError(
                    code="E_UNKNOWN_SUBDP_DEPENDENCY",
                    message=f"Subdp '{subdp.name}' in '{dp.id}' depends on non-existent: {dep}",
                    file=file,
                    path=f"{path}.dependencies",
                )
            )

        if subdp.kind == "dependency" and subdp.requirement is None:
            result.warnings.append(
                DPWarning(
                    code="W_MISSING_REQUIREMENT",
                    message=f"Subdp '{subdp.name}' is type 'dependency' but missing 'nature' field",
                    file=file,
                    path=f"{path}.nature",
                )
            )
        if subdp.kind == "specification" and not subdp.workflow:
            result.warnings.append(
                DPWarning(
                    code="W_EMPTY_WORKFLOW",
                    message=f"Subdp '{subdp.name}' is type 'specification' but has no workflow steps",
                    file=file,
                    path=f"{path}.workflow",
                )
            )

    numbers = list(dp.subdps.entries.keys())
    if dp.subdps.order and len(numbers) > 1 and len(numbers) != max(numbers):
        result.warnings.append(
            DPWarning(
                code="W_ORDER_GAP",
                message=(
                    f"DP '{dp.id}' has order=true but missing subdp numbers "
                    f"(found: {', '.join(str(n) for n in numbers)}, expected: 1-{max(numbers)})"
                ),
                file=file,
                path="subdps.order",
            )
        )


def validate_all(dps: list[DesignPrescription], config: ProjectConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Validate every DP, then check the dependency graph for cycles.

    Returns a single ValidationResult; compilation must not proceed unless valid.
    """
    result = ValidationResult()
    if not dps:
        result.warnings.append(DPWarning(code="W_NO_DPS", message="No DPs to validate"))
        return result

    logger.info("validating %d DPs", len(dps))
    for dp in dps:
        result.merge(validate_dp(dp, dps, config))

    result.merge(detect_cycles(build_graph(dps)))

    if result.valid:
        logger.info("all %d DPs are valid", len(dps))
    else:
        logger.info("validation failed with %d errors", len(result.errors))
    return result
