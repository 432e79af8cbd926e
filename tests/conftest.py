"""
Test configuration and fixtures for SiteScore tests.
"""

import pytest
import sys
import os

# Add the parent directory to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sitescore.phosphors import PTM, AnnotationSettings, Peptide, PhosphoRS, Spectrum
from sitescore.phosphors.fragments import FragmentIonPredictor
from sitescore.phosphors.phosphors import get_possible_peptides

PHOSPHO_STY = ["Phospho (S)", "Phospho (T)", "Phospho (Y)"]


@pytest.fixture(scope="session")
def phospho_ptms():
    """Phosphorylation of S, T and Y resolved from ModificationsDB."""
    return [PTM.from_openms(name) for name in PHOSPHO_STY]


@pytest.fixture
def scorer():
    """A fresh scorer with its own distribution cache."""
    return PhosphoRS()


@pytest.fixture(scope="session")
def settings():
    """0.05 Da, b and y ions of charge 1."""
    return AnnotationSettings(fragment_tolerance=0.05, ion_types=("b", "y"), charges=(1,))


@pytest.fixture(scope="session")
def variant_spectrum(phospho_ptms, settings):
    """
    Build a synthetic spectrum from the ions of one modification profile.

    Ions that differ from every other profile get the highest intensities so
    that they survive depth reduction.
    """

    def build(sequence, profile, competitors=(), title="synthetic"):
        peptide = Peptide(sequence)
        base = _with_phospho(peptide, phospho_ptms, profile)
        predictor = FragmentIonPredictor()
        no_losses = settings.scoring_settings(phospho_ptms[0].mass, 2000.0, False)
        ions = predictor.predict(base, no_losses)
        other_mzs = set()
        for other in competitors:
            variant = _with_phospho(peptide, phospho_ptms, other)
            other_mzs.update(predictor.predict(variant, no_losses).mz_values())

        mzs = sorted(ions.mz_values())
        intensities = []
        for i, mz in enumerate(mzs):
            boost = 10000.0 if mz not in other_mzs else 0.0
            intensities.append(boost + 100.0 + i)
        return Spectrum(mzs, intensities, precursor_mz=500.0, precursor_charge=2, title=title)

    return build


def _with_phospho(peptide, ptms, profile):
    profile = tuple(profile)
    return get_possible_peptides(peptide, ptms, [profile])[profile]


@pytest.fixture
def temp_output_dir():
    """Create a temporary directory for output files."""
    import tempfile
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_output_file(temp_output_dir):
    """Get a sample output file path."""
    return os.path.join(temp_output_dir, "test_output.idXML")


# Markers for different test categories
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "cli: marks tests that test CLI functionality")
    config.addinivalue_line("markers", "algorithm: marks tests that test algorithm functionality")
