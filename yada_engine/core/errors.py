from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class YadaError(Exception):
    """A coded issue tied to a DP file or the workflow file.

    Issues are collected into result envelopes; only storage failures are
    raised. ``path`` is a dotted field path inside the file (``subdps.2.nature``).
    """

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    @property
    def severity(self) -> str:
        return "warning" if self.code.startswith("W_") else "error"

    @property
    def location(self) -> str:
        if self.file and self.path:
            return f"{self.file}:{self.path}"
        return self.file or self.path or "<project>"

    def __str__(self) -> str:
        return f"{self.location}: {self.code}: {self.message}"


class DPLoadError(YadaError):
    """A DP file could not be read or converted into a DesignPrescription."""


class DPValidationError(YadaError):
    """Structural problem across loaded DPs (references, duplicates, cycles)."""


class DPWarning(YadaError):
    """Advisory issue (W_* codes). Never blocks compilation or state changes."""


class PlanStoreError(YadaError):
    """Storage I/O failure on the compiled plan. The only issue state operations raise."""
