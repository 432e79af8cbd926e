"""
Error kinds raised by the PhosphoRS scorer.

All kinds are deterministic for a given input: retrying without changing
the peptide, spectrum or settings reproduces the same failure.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Optional


class PhosphoRSError(ValueError):
    """Base class of every localization failure."""

    kind = "error"


class InvalidInput(PhosphoRSError):
    kind = "invalid_input"


class ProbabilityRangeViolation(PhosphoRSError):
    kind = "probability_range"


class NormalizationFailure(PhosphoRSError):
    kind = "normalization"


class IncompleteCoverage(PhosphoRSError):
    kind = "incomplete_coverage"


class EmptySpectrum(PhosphoRSError):
    kind = "empty_spectrum"


class OverFiltered(PhosphoRSError):
    kind = "over_filtered"


class CollaboratorError(PhosphoRSError):
    """Wraps failures raised by pyOpenMS (catalog lookups, fragmentation, parsing)."""

    kind = "collaborator"


def check_probability_range(p: float) -> float:
    """Raise ProbabilityRangeViolation unless 0 <= p <= 1."""
    if p is None or math.isnan(p) or p < 0.0 or p > 1.0:
        raise ProbabilityRangeViolation(f"Probability outside [0, 1]: {p}")
    return p


@dataclass
class LocalizationResult:
    """Outcome of one localization call: either site scores or a failure."""

    ok: bool
    scores: Dict[int, float] = field(default_factory=dict)
    kind: Optional[str] = None
    message: str = ""

    @classmethod
    def success(cls, scores: Dict[int, float]) -> "LocalizationResult":
        return cls(ok=True, scores=scores)

    @classmethod
    def failure(cls, kind: str, message: str) -> "LocalizationResult":
        return cls(ok=False, kind=kind, message=message)

    @classmethod
    def from_error(cls, error: PhosphoRSError) -> "LocalizationResult":
        return cls.failure(error.kind, str(error))
