"""
Test imports for SiteScore package.
"""

import sys
import os
import sitescore
from sitescore import PhosphoRS, get_sequence_probabilities, localize_peptide_hit

# Add the parent directory to the path so we can import sitescore
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def test_sitescore_import():
    """Test that the main sitescore package can be imported."""

    assert hasattr(sitescore, "__version__")
    assert sitescore.__version__ == "0.1.0"


def test_phosphors_import():
    """Test that PhosphoRS can be imported."""
    assert PhosphoRS is not None
    assert get_sequence_probabilities is not None
    assert localize_peptide_hit is not None


def test_errors_are_value_errors():
    """Test that every localization failure is a ValueError."""
    from sitescore.phosphors import errors

    for name in ("InvalidInput", "EmptySpectrum", "OverFiltered", "CollaboratorError"):
        assert issubclass(getattr(errors, name), ValueError)


def test_cli_import():
    """Test that CLI can be imported."""
    from sitescore import sitescorec

    assert sitescorec is not None
    assert hasattr(sitescorec, "main")
