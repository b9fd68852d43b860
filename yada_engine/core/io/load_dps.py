from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional, cast

import yaml

from yada_engine.core.config import DEFAULT_CONFIG, ProjectConfig
from yada_engine.core.errors import DPLoadError
from yada_engine.core.model import (
    ALLOWED_DP_NATURES,
    ALLOWED_SUBDP_KINDS,
    ALLOWED_SUBDP_REQUIREMENTS,
    DesignPrescription,
    DPNature,
    ParseResult,
    SubDP,
    SubDPKind,
    SubDPRequirement,
    SubDPs,
)

logger = logging.getLogger(__name__)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def find_dp_files(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> list[Path]:
    dps_dir = Path(root) / config.dps_dir
    if not dps_dir.is_dir():
        logger.warning("dps directory not found at %s", dps_dir)
        return []
    return sorted(p for p in dps_dir.iterdir() if p.is_file() and p.name.endswith(config.extension))


def load_dp(path: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> DesignPrescription:
    """Load one .yada file into a DesignPrescription.

    The loose YAML mapping is checked and converted here; nothing past this
    function sees raw dicts. Raises DPLoadError on any shape problem.
    """
    p = Path(path)
    file = str(p)
    if not p.exists():
        raise DPLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=file)

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise DPLoadError(code="E_FILE_READ", message=str(e), file=file) from e

    try:
        raw = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise DPLoadError(code="E_YAML_PARSE", message=str(e), file=file) from e

    if not isinstance(raw, dict):
        raise DPLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping",
            file=file,
        )

    name = raw.get("name")
    if name is None or not str(name).strip():
        raise DPLoadError(
            code="E_REQUIRED_FIELD",
            message="name is required and must be a non-empty string",
            file=file,
            path="name",
        )

    nature = raw.get("nature")
    if nature is not None and nature not in ALLOWED_DP_NATURES:
        raise DPLoadError(
            code="E_INVALID_ENUM",
            message=f"nature must be one of {sorted(ALLOWED_DP_NATURES)}",
            file=file,
            path="nature",
        )

    phase = raw.get("phase")
    dp_id = p.name[: -len(config.extension)] if p.name.endswith(config.extension) else p.stem

    return DesignPrescription(
        id=dp_id,
        name=str(name).strip(),
        nature=cast(Optional[DPNature], nature),
        file_path=file,
        priority=_priority(raw.get("priority"), file),
        description=_description(raw.get("description")),
        phase=None if phase is None else str(phase),
        dependencies=_str_list(raw.get("dependencies"), file, "dependencies"),
        subdps=_subdps(raw.get("subdps"), file),
    )


def load_all(root: str | Path, config: ProjectConfig = DEFAULT_CONFIG) -> ParseResult:
    """Load every DP under <root>/dps. Failures are collected, not raised."""
    result = ParseResult()
    for path in find_dp_files(root, config):
        try:
            result.dps.append(load_dp(path, config))
        except DPLoadError as e:
            result.errors.append(e)

    # Ordinal comparison keeps ordering identical across locales.
    result.dps.sort(key=lambda dp: (dp.name, dp.id))
    logger.debug("parsed %d DPs (%d failed)", len(result.dps), len(result.errors))
    return result


def load_by_name(root: str | Path, dp_id: str, config: ProjectConfig = DEFAULT_CONFIG) -> DesignPrescription:
    """Load <root>/dps/<dp_id>.yada. Accepts the id with or without the extension."""
    if dp_id.endswith(config.extension):
        dp_id = dp_id[: -len(config.extension)]
    return load_dp(Path(root) / config.dps_dir / f"{dp_id}{config.extension}", config)


def _description(v: Any) -> str:
    if isinstance(v, str):
        return _BLOCK_COMMENT.sub("", v).strip()
    return ""


def _priority(v: Any, file: str) -> int:
    if v is None:
        return 0
    if isinstance(v, bool):
        raise DPLoadError(code="E_INVALID_TYPE", message="priority must be an integer", file=file, path="priority")
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip())
    except ValueError as e:
        raise DPLoadError(
            code="E_INVALID_TYPE",
            message="priority must be an integer",
            file=file,
            path="priority",
        ) from e


def _str_list(v: Any, file: str, path: str) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    if not isinstance(v, list) or not all(isinstance(x, (str, int)) for x in v):
        raise DPLoadError(
            code="E_INVALID_TYPE",
            message=f"{path.rsplit('.', 1)[-1]} must be an array of strings",
            file=file,
            path=path,
        )
    return [str(x) for x in v]


def _subdps(raw: Any, file: str) -> SubDPs:
    if raw is None:
        return SubDPs()
    if not isinstance(raw, dict):
        raise DPLoadError(code="E_INVALID_TYPE", message="subdps must be a mapping", file=file, path="subdps")

    entries: dict[int, SubDP] = {}
    for key, sub_raw in raw.items():
        if key == "order":
            continue
        try:
            num = int(key)
        except (TypeError, ValueError):
            logger.debug("%s: ignoring non-numeric subdps key %r", file, key)
            continue
        if num <= 0 or sub_raw is None:
            continue
        if num in entries:
            raise DPLoadError(
                code="E_INVALID_TYPE",
                message=f"duplicate subdps key: {num}",
                file=file,
                path=f"subdps.{num}",
            )
        entries[num] = _subdp(sub_raw, num, file)

    return SubDPs(order=bool(raw.get("order", False)), entries=dict(sorted(entries.items())))


def _subdp(raw: Any, index: int, file: str) -> SubDP:
    path = f"subdps.{index}"
    if not isinstance(raw, dict):
        raise DPLoadError(code="E_INVALID_TYPE", message="subdp must be a mapping", file=file, path=path)

    kind = raw.get("type")
    if kind is not None and kind not in ALLOWED_SUBDP_KINDS:
        raise DPLoadError(
            code="E_INVALID_ENUM",
            message=f"type must be one of {sorted(ALLOWED_SUBDP_KINDS)}",
            file=file,
            path=f"{path}.type",
        )

    requirement = raw.get("nature")
    if requirement is not None and requirement not in ALLOWED_SUBDP_REQUIREMENTS:
        raise DPLoadError(
            code="E_INVALID_ENUM",
            message=f"nature must be one of {sorted(ALLOWED_SUBDP_REQUIREMENTS)}",
            file=file,
            path=f"{path}.nature",
        )

    name = raw.get("name")
    return SubDP(
        index=index,
        name=str(name) if name else f"subdp{index}",
        kind=cast(Optional[SubDPKind], kind),
        description=_description(raw.get("description")),
        requirement=cast(Optional[SubDPRequirement], requirement),
        workflow=_str_list(raw.get("workflow"), file, f"{path}.workflow"),
        dependencies=_str_list(raw.get("dependencies"), file, f"{path}.dependencies"),
        intents=_str_list(raw.get("intents"), file, f"{path}.intents"),
    )
