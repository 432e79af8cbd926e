"""
Test peptides, modifications and fragment ion prediction.
"""

import pytest
from pyopenms import AASequence

from sitescore.phosphors.constants import TERM_C, TERM_N, TERM_PROTEIN_N
from sitescore.phosphors.errors import CollaboratorError
from sitescore.phosphors.fragments import (
    FragmentIon,
    FragmentIonPredictor,
    FragmentIonSet,
    SpectrumAnnotator,
    parse_ion_name,
)
from sitescore.phosphors.peptide import PTM, ModificationMatch, Peptide
from sitescore.phosphors.settings import AnnotationSettings
from sitescore.phosphors.spectrum import Spectrum

PROTON = 1.007276


class TestPTM:
    def test_from_openms(self, phospho_ptms):
        phospho_s = phospho_ptms[0]
        assert phospho_s.name == "Phospho (S)"
        assert phospho_s.short_name == "Phospho"
        assert phospho_s.mass == pytest.approx(79.966331, abs=1e-4)
        assert phospho_s.residues == frozenset({"S"})
        assert phospho_s.term == "anywhere"
        assert not phospho_s.is_n_term
        assert not phospho_s.is_c_term

    def test_term_specificity(self):
        assert PTM.from_openms("Phospho (S)").term == "anywhere"
        assert PTM.from_openms("Oxidation (M)").term == "anywhere"
        acetyl = PTM.from_openms("Acetyl (N-term)")
        assert acetyl.term == TERM_N
        assert acetyl.is_n_term
        amidated = PTM.from_openms("Amidated (C-term)")
        assert amidated.term == TERM_C
        assert amidated.is_c_term

    def test_unknown_modification(self):
        with pytest.raises(CollaboratorError):
            PTM.from_openms("NoSuchModification (Q)")


class TestPeptide:
    def test_from_aasequence(self):
        sequence = AASequence.fromString("PEPS(Phospho)TIDEK")
        peptide = Peptide.from_aasequence(sequence, ["Phospho (S)"])
        assert peptide.sequence == "PEPSTIDEK"
        assert peptide.modifications == (ModificationMatch("Phospho (S)", True, 4),)
        assert peptide.count_variable(["Phospho (S)", "Phospho (T)"]) == 1

    def test_fixed_modifications(self):
        sequence = AASequence.fromString("PEPC(Carbamidomethyl)TIDEK")
        peptide = Peptide.from_aasequence(sequence, ["Phospho (S)"])
        assert len(peptide.modifications) == 1
        assert not peptide.modifications[0].variable
        assert peptide.count_variable(["Phospho (S)"]) == 0

    def test_n_terminal_modification(self):
        sequence = AASequence.fromString(".(Acetyl)PEPSTIDEK")
        peptide = Peptide.from_aasequence(sequence)
        match = peptide.modifications[0]
        assert match.terminal == "N"
        assert match.site == 1
        assert peptide.to_string() == ".(Acetyl)PEPSTIDEK"

    def test_string_round_trip(self):
        peptide = Peptide.from_aasequence(AASequence.fromString("PEPS(Phospho)TIDEK"))
        assert peptide.to_string() == "PEPS(Phospho)TIDEK"
        again = Peptide.from_aasequence(peptide.to_aasequence())
        assert again == peptide

    def test_immutable_edits(self):
        peptide = Peptide("PEPSTIDEK", (ModificationMatch("Phospho (S)", True, 4),))
        stripped = peptide.without_modifications(["Phospho (S)"])
        assert stripped.modifications == ()
        assert len(peptide.modifications) == 1
        moved = stripped.with_modifications([ModificationMatch("Phospho (T)", True, 5)])
        assert moved.to_string() == "PEPST(Phospho)IDEK"
        assert stripped.modifications == ()

    def test_potential_sites(self, phospho_ptms):
        peptide = Peptide("SPEPSTIDEK")
        assert peptide.get_potential_modification_sites(phospho_ptms[0]) == [1, 5]
        assert peptide.get_potential_modification_sites(phospho_ptms[2]) == []

    def test_terminal_sites(self):
        acetyl = PTM("Acetyl (N-term)", "Acetyl", 42.010565, frozenset({"X"}), TERM_N)
        protein_acetyl = PTM(
            "Acetyl (Protein N-term)", "Acetyl", 42.010565, frozenset({"X"}), TERM_PROTEIN_N
        )
        peptide = Peptide("PEPSTIDEK")
        assert peptide.get_potential_modification_sites(acetyl) == [1]
        assert peptide.get_potential_modification_sites(protein_acetyl) == []
        at_protein_start = Peptide("PEPSTIDEK", protein_n_term=True)
        assert at_protein_start.get_potential_modification_sites(protein_acetyl) == [1]

    def test_unparsable_sequence(self):
        peptide = Peptide("PEPTIDE", (ModificationMatch("NoSuchModification (E)", True, 2),))
        with pytest.raises(CollaboratorError):
            peptide.to_aasequence()


class TestFragments:
    def test_parse_ion_name(self):
        assert parse_ion_name("b3+", 300.0) == FragmentIon("b", 3, 1, 300.0)
        assert parse_ion_name("y4-H2O1++", 250.0) == FragmentIon("y", 4, 2, 250.0, "H2O1")
        assert parse_ion_name("[M+H]+", 800.0) is None
        assert FragmentIon("y", 4, 2, 250.0, "H2O1").name == "y4-H2O1++"

    def test_predict_backbone_ions(self):
        settings = AnnotationSettings(
            ion_types=("b", "y"), charges=(1,), account_neutral_losses=False
        )
        ions = FragmentIonPredictor().predict(Peptide("PEPTIDE"), settings)
        assert ions.n_expected == 12
        assert {ion.series for ion in ions.ions} == {"b", "y"}
        assert all(ion.charge == 1 and ion.loss == "" for ion in ions.ions)
        # y1 = E + H2O + H+
        y1 = next(
            ion for ion in ions.ions if (ion.series, ion.position) == ("y", 1)
        )
        assert y1.mz == pytest.approx(129.042593 + 18.010565 + PROTON, abs=1e-3)

    def test_predict_charges(self):
        settings = AnnotationSettings(charges=(1, 2), account_neutral_losses=False)
        ions = FragmentIonPredictor().predict(Peptide("PEPTIDE"), settings)
        assert {ion.charge for ion in ions.ions} == {1, 2}
        assert ions.n_expected == 24

    def test_neutral_losses_add_ions(self):
        with_losses = AnnotationSettings(account_neutral_losses=True)
        without = AnnotationSettings(account_neutral_losses=False)
        predictor = FragmentIonPredictor()
        peptide = Peptide("PEPTIDEK")
        assert predictor.predict(peptide, with_losses).n_expected > predictor.predict(
            peptide, without
        ).n_expected

    def test_annotation_uses_closest_peak(self):
        ions = FragmentIonSet()
        ions.add(FragmentIon("b", 2, 1, 200.0))
        ions.add(FragmentIon("b", 3, 1, 300.0))
        spectrum = Spectrum([199.97, 200.01, 300.3], [50.0, 10.0, 70.0])
        settings = AnnotationSettings(fragment_tolerance=0.05)
        matches = SpectrumAnnotator().get_spectrum_annotation(settings, spectrum, ions)
        assert len(matches) == 1
        assert matches[0].peak_mz == pytest.approx(200.01)
        assert matches[0].ion.mz == 200.0
