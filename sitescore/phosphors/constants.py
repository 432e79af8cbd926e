"""
Constants and default configurations for the PhosphoRS scorer
"""

# Window reduction
WINDOW_SIZE = 100.0
MAX_DEPTH = 8  # must be greater than 1
MIN_DEPTH = 2

# Distribution cache
DISTRIBUTION_CACHE_SIZE = 1000

# Pre-filtering
FILTER_WINDOW_FACTOR = 10.0  # window = 10 * ms2 tolerance for tolerances <= 10 Da
FILTER_MAX_PEAKS = 10
FILTER_TOLERANCE_LIMIT = 10.0

# Physical constants
PPM = 1.0 / 1000000.0

# Backbone fragment ion series understood by TheoreticalSpectrumGenerator
BACKBONE_ION_TYPES = ("a", "b", "c", "x", "y", "z")

# Terminal specificities as reported by ResidueModification.getTermSpecificityName()
TERM_ANYWHERE = "anywhere"
TERM_N = "N-term"
TERM_C = "C-term"
TERM_PROTEIN_N = "Protein N-term"
TERM_PROTEIN_C = "Protein C-term"

# Default configuration
DEFAULT_CONFIG = {
    # Tolerance settings
    "fragment_mass_tolerance": 0.05,
    "fragment_mass_unit": "Da",
    # Modification settings
    "target_modifications": ["Phospho (S)", "Phospho (T)", "Phospho (Y)"],
    # Fragment settings
    "ion_types": ["b", "y"],
    "fragment_charges": [1],
    "account_neutral_losses": True,
    "neutral_losses": None,  # None keeps every loss the generator produces
    # Algorithm settings
    "window_size": WINDOW_SIZE,
    "max_depth": MAX_DEPTH,
    "min_depth": MIN_DEPTH,
    "distribution_cache_size": DISTRIBUTION_CACHE_SIZE,
    "max_profiles": 16384,
    "match_i_l": False,
    # Performance settings
    "threads": 1,
}
