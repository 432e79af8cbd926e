"""
Fragment ion prediction and spectrum annotation.

Theoretical backbone fragment ions are generated with the pyOpenMS
TheoreticalSpectrumGenerator and matched against observed peaks.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

import numpy as np
from pyopenms import EmpiricalFormula, MSSpectrum, TheoreticalSpectrumGenerator

from .constants import BACKBONE_ION_TYPES
from .errors import CollaboratorError

logger = logging.getLogger(__name__)

# e.g. "b3+", "y5++", "y4-H2O1+"
ION_NAME_PATTERN = re.compile(r"^([abcxyz])(\d+)(?:-([A-Za-z0-9]+))?(\++)$")


@dataclass(frozen=True)
class FragmentIon:
    series: str
    position: int
    charge: int
    mz: float
    loss: str = ""

    @property
    def name(self) -> str:
        loss = f"-{self.loss}" if self.loss else ""
        return f"{self.series}{self.position}{loss}{'+' * self.charge}"


@dataclass
class FragmentIonSet:
    """Theoretical ions of one peptide."""

    ions: List[FragmentIon] = field(default_factory=list)

    def add(self, ion: FragmentIon) -> None:
        self.ions.append(ion)

    @property
    def n_expected(self) -> int:
        """Number of expected ions over all series, charges and losses."""
        return len(self.ions)

    def mz_values(self) -> set:
        return {ion.mz for ion in self.ions}

    def __len__(self) -> int:
        return len(self.ions)


@lru_cache(maxsize=256)
def loss_mass(formula: str) -> float:
    """Monoisotopic mass of a neutral loss formula."""
    return EmpiricalFormula(formula).getMonoWeight()


def parse_ion_name(name: str, mz: float) -> Optional[FragmentIon]:
    match = ION_NAME_PATTERN.match(name)
    if match is None:
        return None
    series, position, loss, charges = match.groups()
    return FragmentIon(series, int(position), len(charges), float(mz), loss or "")


class FragmentIonPredictor:
    """
    Predicts backbone fragment ions of a peptide.

    The pyOpenMS generator is configured from the annotation settings: ion
    series, charges and neutral losses. Losses whose mass matches an excluded
    mass of the settings are dropped.
    """

    def _generator(self, settings) -> TheoreticalSpectrumGenerator:
        generator = TheoreticalSpectrumGenerator()
        params = generator.getParameters()
        params.setValue("isotope_model", "none")
        params.setValue("add_metainfo", "true")
        params.setValue("add_precursor_peaks", "false")
        params.setValue("add_abundant_immonium_ions", "false")
        params.setValue("add_first_prefix_ion", "true")
        params.setValue("add_losses", "true" if settings.account_neutral_losses else "false")
        for ion_type in BACKBONE_ION_TYPES:
            params.setValue(
                f"add_{ion_type}_ions", "true" if ion_type in settings.ion_types else "false"
            )
        generator.setParameters(params)
        return generator

    def _keep_loss(self, loss: str, settings) -> bool:
        mass = loss_mass(loss)
        if settings.is_excluded_loss(mass):
            return False
        if settings.neutral_losses is None:
            return True
        return any(
            abs(mass - loss_mass(allowed)) < 1e-4 for allowed in settings.neutral_losses
        )

    def predict(self, peptide, settings) -> FragmentIonSet:
        """
        Predict the fragment ions of a peptide.

        Args:
            peptide: Peptide value
            settings: AnnotationSettings

        Returns:
            FragmentIonSet with every expected ion
        """
        sequence = peptide.to_aasequence()
        theo = MSSpectrum()
        try:
            self._generator(settings).getSpectrum(
                theo, sequence, min(settings.charges), max(settings.charges)
            )
            mzs = theo.get_peaks()[0]
            names = list(theo.getStringDataArrays()[0]) if len(mzs) else []
        except Exception as e:
            raise CollaboratorError(
                f"Fragment ion generation failed for {peptide}: {e}"
            ) from e

        charges = set(settings.charges)
        ions = FragmentIonSet()
        for mz, raw_name in zip(mzs, names):
            name = raw_name.decode() if isinstance(raw_name, bytes) else str(raw_name)
            ion = parse_ion_name(name, mz)
            if ion is None or ion.series not in settings.ion_types:
                continue
            if ion.charge not in charges:
                continue
            if ion.loss and not self._keep_loss(ion.loss, settings):
                continue
            ions.add(ion)
        return ions


@dataclass(frozen=True)
class IonMatch:
    ion: FragmentIon
    peak_mz: float
    peak_intensity: float


class SpectrumAnnotator:
    """Matches theoretical ions to the peaks of a spectrum."""

    def get_spectrum_annotation(self, settings, spectrum, ions: FragmentIonSet) -> List[IonMatch]:
        """
        Return one match per theoretical ion that has a peak within tolerance.

        The closest peak is used when several are within tolerance.
        """
        mz_arr, it_arr = spectrum.get_peaks()
        matches = []
        if len(mz_arr) == 0:
            return matches
        for ion in ions.ions:
            tol = settings.tolerance_in_da(ion.mz)
            start = int(np.searchsorted(mz_arr, ion.mz - tol, side="left"))
            end = int(np.searchsorted(mz_arr, ion.mz + tol, side="right"))
            if start >= end:
                continue
            best = start + int(np.argmin(np.abs(mz_arr[start:end] - ion.mz)))
            matches.append(IonMatch(ion, float(mz_arr[best]), float(it_arr[best])))
        return matches

    def count_matches(self, settings, spectrum, ions: FragmentIonSet) -> int:
        return len(self.get_spectrum_annotation(settings, spectrum, ions))
