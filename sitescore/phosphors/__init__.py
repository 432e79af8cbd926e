"""
PhosphoRS package for modification site localization.

This package provides the PhosphoRS algorithm implementation and scoring pipeline
for mass spectrometry post-translational modification localization.
"""

from .config import PhosphoRSConfig
from .errors import (
    CollaboratorError,
    EmptySpectrum,
    IncompleteCoverage,
    InvalidInput,
    LocalizationResult,
    NormalizationFailure,
    OverFiltered,
    PhosphoRSError,
    ProbabilityRangeViolation,
)
from .peptide import PTM, ModificationMatch, Peptide
from .phosphors import (
    PhosphoRS,
    get_sequence_probabilities,
    group_ptms_by_mass,
    localize_peptide_hit,
)
from .settings import AnnotationSettings, SequenceMatchingPreferences
from .spectrum import Spectrum

__all__ = [
    "PhosphoRS",
    "PhosphoRSConfig",
    "get_sequence_probabilities",
    "localize_peptide_hit",
    "group_ptms_by_mass",
    "PTM",
    "ModificationMatch",
    "Peptide",
    "Spectrum",
    "AnnotationSettings",
    "SequenceMatchingPreferences",
    "LocalizationResult",
    "PhosphoRSError",
    "InvalidInput",
    "ProbabilityRangeViolation",
    "NormalizationFailure",
    "IncompleteCoverage",
    "EmptySpectrum",
    "OverFiltered",
    "CollaboratorError",
]
