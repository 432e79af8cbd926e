"""
SiteScore: Mass spectrometry post-translational modification site localization.

This package provides the PhosphoRS algorithm for scoring the possible sites
of phosphorylations and other modifications on identified peptides.
"""

__version__ = "0.1.0"
__author__ = "BigBio Stack"
__license__ = "MIT"

from .phosphors import PhosphoRS, get_sequence_probabilities, localize_peptide_hit

__all__ = ["PhosphoRS", "get_sequence_probabilities", "localize_peptide_hit"]
